"""Handler construction, socket binding and the running server handle.

A server is started in three steps:

1. The handler factory is invoked (and awaited when it returns an
   awaitable). The factory may be given as an import string such as
   ``"myapp.main:create_app"``, resolved with uvicorn's importer. Both
   import strings and module-level functions are looked up again on every
   call, so a module reloaded by the hot-reload supervisor is picked up.
2. A listening socket is bound on the resolved address and port. With
   ``shared`` set the socket also gets ``SO_REUSEPORT``.
3. uvicorn serves the ASGI handler on that socket in a background task.

Example::

    from shelf_run.config import BindConfig
    from shelf_run.server import start_server

    bound = await start_server(create_app, BindConfig(port=0, address="localhost", shared=False))
    print(bound.port)
    await bound.close()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import socket
import ssl
import sys
from typing import Any, Callable, Optional, Union

import uvicorn
from uvicorn.importer import import_from_string

from .config import BindConfig

logger = logging.getLogger(__name__)

HandlerFactory = Callable[[], Any]
Init = Union[str, HandlerFactory]

STARTUP_POLL_INTERVAL = 0.01


class ServerStartupError(RuntimeError):
    """Raised when uvicorn stops before reporting the server as started."""


def resolve_factory(init: Init) -> HandlerFactory:
    """Return the current version of the handler factory.

    Import strings are imported. A plain function defined at module level is
    fetched again from its module, so a reloaded module's definition wins.
    Other callables (closures, methods, partials) are returned unchanged.

    Raises:
        TypeError: If ``init`` is neither callable nor a string.
    """
    if isinstance(init, str):
        return import_from_string(init)
    if not callable(init):
        raise TypeError(f"Handler factory must be callable, got {type(init).__name__}")
    if not inspect.isfunction(init) or "<" in init.__qualname__:
        return init

    target: Any = sys.modules.get(init.__module__)
    for part in init.__qualname__.split("."):
        target = getattr(target, part, None)
        if target is None:
            return init
    return target if inspect.isfunction(target) else init


async def build_handler(init: Init) -> Any:
    """Invoke the handler factory and return the ASGI application.

    Args:
        init: Zero-argument callable, or ``"module:attribute"`` import string
            naming one. Its result may be an awaitable.

    Raises:
        TypeError: If ``init`` is neither callable nor a string.
    """
    handler = resolve_factory(init)()
    if inspect.isawaitable(handler):
        handler = await handler
    return handler


def bind_socket(address: str, port: int, shared: bool = False) -> socket.socket:
    """Bind a TCP socket on ``address:port``.

    IPv4 results of the address lookup are preferred, so ``localhost`` binds
    ``127.0.0.1`` where available.
    """
    infos = socket.getaddrinfo(
        address, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
    )
    infos.sort(key=lambda info: info[0] != socket.AF_INET)
    family, sock_type, proto, _, sockaddr = infos[0]

    sock = socket.socket(family, sock_type, proto)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if shared:
            if hasattr(socket, "SO_REUSEPORT"):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            else:
                logger.warning("SO_REUSEPORT is not supported here; binding unshared")
        sock.bind(sockaddr)
        sock.set_inheritable(True)
    except BaseException:
        sock.close()
        raise
    return sock


class BoundServer:
    """A uvicorn server listening on one bound socket.

    Closing is idempotent: every :meth:`close` waits for the same shutdown,
    and :attr:`closed` turns true once the socket has been released.
    """

    def __init__(self, server: uvicorn.Server, task: asyncio.Task, sock: socket.socket):
        self._server = server
        self._task = task
        self._socket = sock
        self.address, self.port = sock.getsockname()[:2]
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Stop serving and release the listening socket."""
        self._server.should_exit = True
        await asyncio.wait([self._task])
        if self._closed:
            return
        self._closed = True
        self._socket.close()
        logger.info(f"Server on port {self.port} closed")
        if not self._task.cancelled():
            self._task.result()

    async def wait_closed(self) -> None:
        """Wait until the server stops, without stopping it."""
        await asyncio.wait([self._task])

    def __repr__(self) -> str:
        state = "closed" if self._closed else "serving"
        return f"<BoundServer {self.address}:{self.port} {state}>"


async def _serve(server: uvicorn.Server, sock: socket.socket) -> None:
    # uvicorn calls sys.exit() when the application's lifespan startup fails
    try:
        await server.serve(sockets=[sock])
    except SystemExit as exc:
        raise ServerStartupError(
            f"Server on port {sock.getsockname()[1]} exited with status {exc.code}"
        ) from exc


async def start_server(
    init: Init,
    bind: BindConfig,
    ssl_context: Optional[ssl.SSLContext] = None,
) -> BoundServer:
    """Build the handler, bind the socket and start serving.

    Handler and bind errors propagate unchanged; no socket is left open when
    startup fails.

    Args:
        init: Handler factory or import string, see :func:`build_handler`.
        bind: Resolved address, port and sharing mode.
        ssl_context: Optional server-side TLS context, passed to the listener.

    Returns:
        The running :class:`BoundServer`.

    Raises:
        ServerStartupError: If uvicorn exits before it starts serving, for
            example because the application's lifespan startup failed.
    """
    handler = await build_handler(init)
    sock = bind_socket(bind.address, bind.port, bind.shared)

    config = uvicorn.Config(
        handler,
        host=bind.address,
        port=sock.getsockname()[1],
        log_config=None,
    )
    config.load()
    config.ssl = ssl_context

    server = uvicorn.Server(config)
    task = asyncio.create_task(_serve(server, sock))
    try:
        while not server.started:
            if task.done():
                task.result()
                raise ServerStartupError(
                    f"Server on {bind.address}:{sock.getsockname()[1]} exited during startup"
                )
            await asyncio.sleep(STARTUP_POLL_INTERVAL)
    except BaseException:
        if not task.done():
            server.should_exit = True
            await asyncio.wait([task])
        sock.close()
        raise

    bound = BoundServer(server, task, sock)
    print(f"shelf_run HTTP service running on port {bound.port}")
    logger.info(f"Serving on {bound.address}:{bound.port} (shared={bind.shared})")
    return bound
