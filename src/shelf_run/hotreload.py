"""Hot-reload supervisor driven by ``watchfiles``.

The supervisor receives a zero-argument coroutine function that starts a
server and returns its :class:`~shelf_run.server.BoundServer`. It calls it
once, then watches the source directories for Python file changes. For each
batch of changes it:

1. reloads every imported module whose file changed (a module that fails to
   reload is logged and the running server is kept);
2. closes the current server;
3. starts a new one through the same coroutine function.

Failures while starting are logged and the supervisor waits for the next
change instead of giving up, so a syntax error in the handler can be fixed
without restarting the process.

Example::

    from functools import partial
    from shelf_run import shelf_run
    from shelf_run.hotreload import with_hot_reload

    context = await shelf_run(
        "myapp.main:create_app",
        supervisor=partial(with_hot_reload, watch_dirs=["src"]),
    )

Pass the handler factory as an import string or a module-level function so
the reloaded module's version of the factory is used after a change.
Closures and other callables are reused as given.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import sys
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    AsyncIterable,
    Awaitable,
    Callable,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
    Union,
)

from watchfiles import PythonFilter, awatch

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from .server import BoundServer

logger = logging.getLogger(__name__)

ObtainServer = Callable[[], Awaitable["BoundServer"]]
ChangeSet = Set[Tuple[object, str]]
Watcher = Callable[[], AsyncIterable[ChangeSet]]


class HotReloader:
    """Restart a server whenever watched Python sources change.

    Attributes:
        watch_dirs: Resolved directories being watched.
        server: Server started by the latest successful restart, if any.
        restarts: Number of servers started so far.
    """

    def __init__(
        self,
        obtain_server: ObtainServer,
        watch_dirs: Optional[Iterable[Union[str, Path]]] = None,
        watcher: Optional[Watcher] = None,
    ):
        self._obtain_server = obtain_server
        self.watch_dirs: List[Path] = [
            Path(d).resolve() for d in (watch_dirs or [Path.cwd()])
        ]
        self._watcher = watcher or self._watch
        self._stop_event = asyncio.Event()
        self.server: Optional["BoundServer"] = None
        self.restarts = 0

    def _watch(self) -> AsyncIterable[ChangeSet]:
        return awatch(
            *self.watch_dirs,
            watch_filter=PythonFilter(),
            stop_event=self._stop_event,
        )

    async def run(self) -> None:
        """Start the first server, then restart it on every change batch."""
        watched = ", ".join(str(d) for d in self.watch_dirs)
        logger.info(f"Hot reload enabled, watching {watched}")
        try:
            await self._restart()
            async for changes in self._watcher():
                if self._stop_event.is_set():
                    break
                paths = sorted({Path(path).resolve() for _, path in changes})
                logger.info(f"Detected changes in {len(paths)} file(s), reloading")
                logger.debug("Changed: " + ", ".join(str(p) for p in paths))
                if not self._reload_modules(paths):
                    continue
                await self._restart()
        finally:
            await self._close_current()

    def stop(self) -> None:
        """Ask :meth:`run` to finish after the current step."""
        self._stop_event.set()

    def _reload_modules(self, paths: Iterable[Path]) -> bool:
        changed = set(paths)
        for name, module in list(sys.modules.items()):
            filename = getattr(module, "__file__", None)
            if not filename or name == "__main__":
                continue
            if Path(filename).resolve() not in changed:
                continue
            try:
                importlib.reload(module)
            except Exception:
                logger.exception(f"Reloading {name} failed, keeping the running server")
                return False
            logger.debug(f"Reloaded module {name}")
        return True

    async def _restart(self) -> None:
        await self._close_current()
        try:
            self.server = await self._obtain_server()
        except Exception:
            logger.exception("Server startup failed, waiting for the next change")
            return
        self.restarts += 1

    async def _close_current(self) -> None:
        server, self.server = self.server, None
        if server is not None:
            await server.close()


async def with_hot_reload(
    obtain_server: ObtainServer,
    *,
    watch_dirs: Optional[Iterable[Union[str, Path]]] = None,
) -> None:
    """Default supervisor: run a :class:`HotReloader` until cancelled."""
    await HotReloader(obtain_server, watch_dirs).run()
