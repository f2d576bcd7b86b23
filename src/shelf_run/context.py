"""Lifecycle handle returned by :func:`shelf_run.bootstrap.shelf_run`."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .server import BoundServer

logger = logging.getLogger(__name__)


class ShelfRunContext:
    """Caller-facing handle over the currently bound server.

    The handle keeps a single server slot. Under hot reload the slot is
    reassigned on every reload cycle and :attr:`generation` counts how many
    servers have been attached; the slot may still be empty right after
    :func:`~shelf_run.bootstrap.shelf_run` returns.
    """

    def __init__(self, hot_reload: bool = False):
        self.hot_reload = hot_reload
        self._server: Optional[BoundServer] = None
        self._generation = 0
        self._lock = asyncio.Lock()
        self._supervisor: Optional[asyncio.Task] = None

    @property
    def server(self) -> Optional[BoundServer]:
        """The current server, or ``None`` when none is bound or it was closed.

        Under hot reload the supervisor closes the previous server before
        starting the next one; if that restart fails there is no server.
        """
        server = self._server
        if server is None or server.closed:
            return None
        return server

    @property
    def port(self) -> Optional[int]:
        """Port of the current server, or ``None`` when none is bound."""
        server = self.server
        return server.port if server is not None else None

    @property
    def generation(self) -> int:
        return self._generation

    async def attach(self, server: BoundServer) -> int:
        """Store ``server`` as the current server and return its generation."""
        async with self._lock:
            self._server = server
            self._generation += 1
            return self._generation

    def supervise(self, task: asyncio.Task) -> None:
        """Register the hot-reload supervisor task driving this handle."""
        self._supervisor = task
        task.add_done_callback(self._supervisor_done)

    def _supervisor_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Hot reload supervisor stopped: {error!r}")

    async def close(self) -> None:
        """Stop the supervisor, if any, and close the current server.

        Completes immediately when no server has been bound yet. Safe to
        call more than once.
        """
        supervisor, self._supervisor = self._supervisor, None
        if supervisor is not None and not supervisor.done():
            supervisor.cancel()
            await asyncio.wait([supervisor])

        async with self._lock:
            server, self._server = self._server, None
        if server is not None:
            await server.close()

    async def wait_closed(self) -> None:
        """Wait until the supervisor ends, or the single server stops."""
        if self._supervisor is not None:
            await asyncio.wait([self._supervisor])
            return
        server = self._server
        if server is not None:
            await server.wait_closed()
