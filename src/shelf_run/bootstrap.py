"""Entry points for quickly running an ASGI application.

:func:`shelf_run` is the asynchronous bootstrap: it resolves the effective
configuration from ``SHELF_*`` environment variables (see
:mod:`shelf_run.config`), starts the server directly or under a hot-reload
supervisor, and returns a :class:`~shelf_run.context.ShelfRunContext`.

:func:`run` wraps it for scripts that just want to serve until interrupted.

Example::

    from fastapi import FastAPI
    from shelf_run import run

    def create_app() -> FastAPI:
        app = FastAPI()

        @app.get("/")
        async def index():
            return {"hello": "world"}

        return app

    if __name__ == "__main__":
        run(create_app, default_enable_hot_reload=False)

    $ SHELF_PORT=9000 SHELF_ADDRESS=0.0.0.0 python app.py
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any, Awaitable, Callable, Optional

from .config import BindConfig, RunDefaults, hot_reload_enabled
from .context import ShelfRunContext
from .hotreload import ObtainServer, with_hot_reload
from .server import BoundServer, Init, start_server

logger = logging.getLogger(__name__)

Supervisor = Callable[[ObtainServer], Awaitable[Any]]


async def shelf_run(
    init: Init,
    *,
    default_bind_port: int = 8080,
    default_bind_address: str = "localhost",
    default_enable_hot_reload: bool = True,
    default_shared: bool = False,
    ssl_context: Optional[ssl.SSLContext] = None,
    supervisor: Optional[Supervisor] = None,
) -> ShelfRunContext:
    """Start serving the application produced by ``init``.

    Args:
        init: Zero-argument factory returning an ASGI application (or an
            awaitable of one), or a ``"module:attribute"`` import string
            naming such a factory.
        default_bind_port: Port used unless ``SHELF_PORT`` overrides it.
        default_bind_address: Address used unless ``SHELF_ADDRESS`` overrides it.
        default_enable_hot_reload: Start under the supervisor unless
            ``SHELF_HOTRELOAD=false``.
        default_shared: Socket sharing unless ``SHELF_SHARED`` overrides it.
        ssl_context: Optional server-side TLS context.
        supervisor: Coroutine function that receives the startup closure and
            drives restarts. Defaults to
            :func:`~shelf_run.hotreload.with_hot_reload`.

    Returns:
        The lifecycle handle. Without hot reload the server is already bound.
        With hot reload the supervisor runs in the background and the handle
        may not hold a server yet.

    Raises:
        TypeError: If ``init`` is neither callable nor a string.
        OSError: If the socket cannot be bound (hot reload disabled).
    """
    if not (isinstance(init, str) or callable(init)):
        raise TypeError(f"Handler factory must be callable, got {type(init).__name__}")

    defaults = RunDefaults(
        port=default_bind_port,
        address=default_bind_address,
        hot_reload=default_enable_hot_reload,
        shared=default_shared,
    )
    use_hot_reload = hot_reload_enabled(defaults.hot_reload)
    context = ShelfRunContext(hot_reload=use_hot_reload)

    async def obtain_server() -> BoundServer:
        server = await start_server(init, BindConfig.from_env(defaults), ssl_context)
        generation = await context.attach(server)
        logger.debug(f"Attached server generation {generation} on port {server.port}")
        return server

    if use_hot_reload:
        supervise = supervisor or with_hot_reload
        context.supervise(asyncio.create_task(supervise(obtain_server)))
    else:
        await obtain_server()

    return context


def run(init: Init, **options: Any) -> None:
    """Serve ``init`` until the server stops or the process is interrupted.

    Accepts the same keyword arguments as :func:`shelf_run`.
    """

    async def _serve() -> None:
        context = await shelf_run(init, **options)
        try:
            await context.wait_closed()
        finally:
            await context.close()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Server shutdown complete")
