"""Prefixed ID generation.

Public IDs use a ``{prefix}_{random}`` format so any ID can be
identified by its origin:

- ``sess_9fK2xQ7bLm4TzR1aVn8cWd``: chat session
- ``msg_H3pW7mD4bNxk2Lq8sJ0fTe``: chat message

22 alphanumeric characters carry ~131 bits of entropy, on par with a
random UUID.
"""

import secrets
import string

SESSION_ID_PREFIX = "sess"
MESSAGE_ID_PREFIX = "msg"

_ALPHABET = string.ascii_letters + string.digits
_DEFAULT_LENGTH = 22


def generate_id(prefix: str, length: int = _DEFAULT_LENGTH) -> str:
    """Generate a prefixed random ID, e.g. ``generate_id("sess")``."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(length))
    return f"{prefix}_{suffix}"
