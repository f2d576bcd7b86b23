"""Startup configuration for :func:`shelf_run.bootstrap.shelf_run`.

Callers provide a :class:`RunDefaults`; the effective values are resolved at
startup time from ``SHELF_*`` environment overrides.

Environment Variables:
    SHELF_PORT (int): Listening port. Malformed values fall back to the default.
    SHELF_ADDRESS (str): Bind address.
    SHELF_HOTRELOAD (str): ``false`` disables hot reload. No other value has
        an effect, so ``true`` cannot enable it when the default is off.
    SHELF_SHARED (str): ``true`` binds with ``SO_REUSEPORT`` so several
        processes can listen on the same port; any other value means off.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .env import env, to_bool, to_int

logger = logging.getLogger(__name__)

PORT_VAR = "SHELF_PORT"
ADDRESS_VAR = "SHELF_ADDRESS"
HOTRELOAD_VAR = "SHELF_HOTRELOAD"
SHARED_VAR = "SHELF_SHARED"


@dataclass(frozen=True)
class RunDefaults:
    """Caller-supplied defaults, used when no environment override applies.

    Attributes:
        port: TCP port to listen on (``0`` picks an ephemeral port).
        address: Host name or IP address to bind.
        hot_reload: Run startup under the hot-reload supervisor.
        shared: Allow other sockets to bind the same port.
    """

    port: int = 8080
    address: str = "localhost"
    hot_reload: bool = True
    shared: bool = False


@dataclass(frozen=True)
class BindConfig:
    """Resolved bind parameters for one server instance."""

    port: int
    address: str
    shared: bool

    @classmethod
    def from_env(cls, defaults: RunDefaults) -> "BindConfig":
        """Apply ``SHELF_PORT``, ``SHELF_ADDRESS`` and ``SHELF_SHARED`` to ``defaults``."""
        port = defaults.port
        raw_port = env(PORT_VAR)
        if raw_port is not None:
            parsed = to_int(raw_port)
            if parsed is None:
                logger.debug(
                    f"Ignoring non-integer {PORT_VAR}={raw_port!r}, using {port}"
                )
            else:
                port = parsed

        address = env(ADDRESS_VAR)
        if address is None:
            address = defaults.address

        raw_shared = env(SHARED_VAR)
        shared = defaults.shared if raw_shared is None else to_bool(raw_shared)

        return cls(port=port, address=address, shared=shared)


def hot_reload_enabled(default: bool) -> bool:
    """Resolve the hot-reload toggle.

    Only an explicit ``SHELF_HOTRELOAD=false`` changes the outcome.
    """
    value = env(HOTRELOAD_VAR)
    if value is not None and value.lower() == "false":
        return False
    return default
