"""shelf_run
=========

Mechanism to quickly run an ASGI application with uvicorn.

Requires an ``init`` function that provides the application. Startup can be
configured with environment variables:

- ``SHELF_PORT``: port to listen on (default 8080)
- ``SHELF_ADDRESS``: address to bind (default ``localhost``)
- ``SHELF_HOTRELOAD``: ``false`` disables hot reload (default enabled)
- ``SHELF_SHARED``: ``true`` lets several processes share the listening
  port (default false)

The defaults themselves are arguments of :func:`shelf_run`
(``default_bind_port``, ``default_bind_address``,
``default_enable_hot_reload``, ``default_shared``).

Minimal quick start
-------------------
>>> from shelf_run import shelf_run
>>> context = await shelf_run(create_app, default_enable_hot_reload=False)
>>> context.port
8080
>>> await context.close()

Hot reload is provided by :mod:`shelf_run.hotreload`, which watches Python
sources with ``watchfiles`` and restarts the server on change.
"""

__version__ = "0.1.0"

from .bootstrap import run, shelf_run
from .config import BindConfig, RunDefaults
from .context import ShelfRunContext
from .env import env
from .server import BoundServer, ServerStartupError

__all__ = [
    "BindConfig",
    "BoundServer",
    "RunDefaults",
    "ServerStartupError",
    "ShelfRunContext",
    "env",
    "run",
    "shelf_run",
]
