"""Clock abstraction for testable time handling in the OAuth handler.

This module defines a `Clock` protocol representing callables that return the
current UNIX timestamp as ``float``.  Token expiry stamps and correlation
marker lifetimes MUST depend on an injected ``Clock`` instance rather than
calling ``time.time()`` or ``datetime.now()`` directly.

Example
-------
>>> from oauth_codeflow.auth.clock import default_clock, utcnow
>>> isinstance(default_clock(), float)
True
>>> utcnow(lambda: 0.0).isoformat()
'1970-01-01T00:00:00+00:00'
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Callable protocol returning *seconds* since the UNIX epoch."""

    def __call__(self) -> float: ...


def default_clock() -> float:
    """Default implementation that delegates to ``time.time()``."""
    return time.time()


def utcnow(clock: Clock = default_clock) -> datetime:
    """Return the clock's current time as an aware UTC ``datetime``."""
    return datetime.fromtimestamp(clock(), tz=timezone.utc)
