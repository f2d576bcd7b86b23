"""Environment variable lookup and string coercion helpers.

Variables are looked up by their upper-case name first and then by their
lower-case name, so ``SHELF_PORT`` and ``shelf_port`` are both accepted (the
upper-case form wins when both are set).

Example::

    from shelf_run.env import env, to_int
    port = to_int(env("shelf_port") or "")  # None when unset or malformed
"""

from __future__ import annotations

import os
import re
from typing import Optional

_INT_PATTERN = re.compile(r"^\s*[+-]?\d+\s*$")


def env(key: str) -> Optional[str]:
    """Return the value of ``key`` from the process environment.

    Args:
        key: Variable name in any case.

    Returns:
        Value of the upper-cased name if set, else of the lower-cased name,
        else ``None``.
    """
    value = os.environ.get(key.upper())
    if value is None:
        value = os.environ.get(key.lower())
    return value


def to_int(value: str) -> Optional[int]:
    """Parse a decimal integer, returning ``None`` when ``value`` is not one."""
    if not _INT_PATTERN.match(value):
        return None
    return int(value)


def to_bool(value: str) -> bool:
    """Only ``"true"`` (any case, surrounding whitespace ignored) is true."""
    return value.strip().lower() == "true"
