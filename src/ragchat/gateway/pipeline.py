"""Gateway request pipeline: ordered, short-circuiting stages.

A ``RequestPipeline`` holds an explicit, ordered list of ``Stage``
objects.  For each inbound ``GatewayRequest``:

1. every stage's ``process`` runs in list order; the first stage that
   returns a ``GatewayResponse`` short-circuits the pipeline and that
   response is returned as-is; no later stage and no forward runs;
2. otherwise the downstream forward is invoked through each stage's
   ``around_forward`` hook (first stage outermost), so a stage can
   observe the downstream response without touching it.

Request paths are canonicalised on construction, so dot segments or
encoded separators cannot make a protected path look public.

Header mutations made by one stage are visible to every later stage and
to the forwarded request because all stages share the same request
object.
"""

from __future__ import annotations

import json
from abc import ABC
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Any

import httpx

from ragchat.core.security import canonical_path

Forward = Callable[["GatewayRequest"], Awaitable["GatewayResponse"]]

JSON_MEDIA_TYPE = "application/json"


@dataclass
class GatewayRequest:
    """An inbound request as seen by the pipeline.

    ``path`` is stored in canonical form (see ``canonical_path``), so the
    path stages check is exactly the path that gets forwarded.
    """

    method: str
    path: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    query_string: str = ""
    body: bytes = b""

    def __post_init__(self) -> None:
        self.path = canonical_path(self.path)
        if not isinstance(self.headers, httpx.Headers):
            self.headers = httpx.Headers(self.headers)


@dataclass
class GatewayResponse:
    """A response produced by a stage or by the downstream target."""

    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes = b""

    def __post_init__(self) -> None:
        if not isinstance(self.headers, httpx.Headers):
            self.headers = httpx.Headers(self.headers)

    @classmethod
    def json(cls, status_code: int, payload: dict[str, Any]) -> "GatewayResponse":
        return cls(
            status_code=status_code,
            headers=httpx.Headers({"content-type": JSON_MEDIA_TYPE}),
            body=json.dumps(payload).encode(),
        )


class Stage(ABC):
    """One step of the gateway pipeline.

    Stages keep no per-request state; anything they need lives in
    immutable constructor arguments.
    """

    name: str = "stage"

    async def process(self, request: GatewayRequest) -> GatewayResponse | None:
        """Inspect or mutate *request*; return a response to short-circuit."""
        return None

    async def around_forward(
        self, request: GatewayRequest, call_next: Forward
    ) -> GatewayResponse:
        """Wrap the downstream call.  Default: pass straight through."""
        return await call_next(request)


class RequestPipeline:
    """Fixed driver for an ordered list of stages."""

    def __init__(self, stages: Sequence[Stage], forward: Forward) -> None:
        self._stages: tuple[Stage, ...] = tuple(stages)
        self._forward = forward

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    async def handle(self, request: GatewayRequest) -> GatewayResponse:
        for stage in self._stages:
            response = await stage.process(request)
            if response is not None:
                return response

        call: Forward = self._forward
        for stage in reversed(self._stages):
            call = partial(stage.around_forward, call_next=call)
        return await call(request)
