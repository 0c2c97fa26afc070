"""Lifespans whose resources are declared as FastAPI dependencies.

A tier's lifespan lists what it needs the same way a route does::

    @inject
    async def lifespan(
        app: FastAPI,
        _db: Annotated[None, Depends(build_db)],
    ):
        yield

Each ``build_*`` dependency is an async generator: setup before
``yield``, teardown after.  ``inject`` runs FastAPI's resolver once at
startup against a synthetic request, so ``app.dependency_overrides``
applies and tests can swap a resource (the gateway tests replace
``build_forwarder`` with an in-memory transport).  Teardown runs in
reverse order on shutdown.
"""

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from functools import partial
from typing import Any, AsyncIterator, Callable

from fastapi import FastAPI, Request
from fastapi.dependencies.utils import get_dependant, solve_dependencies

logger = logging.getLogger(__name__)

LifespanFn = Callable[..., Any]


def get_app(request: Request) -> FastAPI:
    """Lifespan dependency: the application being started."""
    return request.app


def _lifespan_scope(app: FastAPI) -> dict[str, Any]:
    # Only what the resolver reads; no route ever sees this scope.
    return {
        "type": "http",
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/",
        "raw_path": b"/",
        "root_path": "",
        "query_string": b"",
        "headers": [(b"x-request-scope", b"lifespan")],
        "client": ("lifespan", 0),
        "server": ("lifespan", 0),
        "state": app.state,
        "app": app,
    }


async def _resolve(
    app: FastAPI, lifespan: LifespanFn, stack: AsyncExitStack
) -> dict[str, Any]:
    solved = await solve_dependencies(
        request=Request(_lifespan_scope(app)),
        dependant=get_dependant(path="/", call=partial(lifespan, app)),
        async_exit_stack=stack,
        embed_body_fields=False,
        dependency_overrides_provider=app,
    )
    if solved.errors:
        raise RuntimeError(f"{app.title}: lifespan dependencies failed: {solved.errors}")
    return solved.values


def inject(lifespan: LifespanFn) -> Callable[[FastAPI], Any]:
    """Turn *lifespan* into a FastAPI lifespan with resolved ``Depends()``."""
    managed = asynccontextmanager(lifespan)

    @asynccontextmanager
    async def wrapper(app: FastAPI) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            values = await _resolve(app, lifespan, stack)
            logger.debug("%s: %d lifespan resources ready", app.title, len(values))
            async with managed(app, **values):
                yield
        logger.debug("%s: lifespan resources released", app.title)

    return wrapper
