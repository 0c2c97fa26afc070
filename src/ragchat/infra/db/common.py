"""Helpers shared by the session and message stores."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ragchat.core.errors import ValidationFailure

_ONE_TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they are always UTC here."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def advance(previous: datetime | None) -> datetime:
    """A timestamp strictly later than *previous*, even if the clock is not."""
    now = utcnow()
    if previous is None:
        return now
    previous = as_utc(previous)
    return now if now > previous else previous + _ONE_TICK


def check_text(
    errors: dict[str, str],
    field: str,
    value: str | None,
    *,
    max_length: int | None = None,
) -> None:
    """Record a problem with *value* in *errors*; oversize is never truncated."""
    if value is None or not value.strip():
        errors[field] = f"{field} must not be blank"
    elif max_length is not None and len(value) > max_length:
        errors[field] = f"{field} must not exceed {max_length} characters"


def raise_for_errors(errors: dict[str, str]) -> None:
    if errors:
        raise ValidationFailure("One or more fields are invalid.", details=errors)
