"""Single-use storage for correlation markers.

Every challenge registers a random nonce; the matching callback must
*consume* it.  Consumption is atomic so that two concurrent callbacks
replaying the same ``state`` cannot both succeed.

Two implementations share the narrow :class:`CorrelationStore` interface:

* :class:`MemoryCorrelationStore` – process-local, backed by
  :class:`cachetools.TTLCache` and a lock.  Suitable for a single worker.
* :class:`DiskCorrelationStore` – JSON marker files under a shared
  directory.  Writes use *temp-file + os.replace* and consumption is an
  atomic rename, so several workers on one host can share it.

Environment variables
---------------------
OAUTH_CORRELATION_DIR
    Base directory for :class:`DiskCorrelationStore` when none is given.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from hashlib import sha256
from pathlib import Path
from typing import Protocol, runtime_checkable

from cachetools import TTLCache

from oauth_codeflow.auth.clock import Clock, default_clock

_LOG = logging.getLogger("oauth-codeflow.auth.store")

# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #


def _hash(text: str, length: int = 32) -> str:
    return sha256(text.encode()).hexdigest()[:length]


def _atomic_write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(data, fh, separators=(",", ":"), sort_keys=True)
    os.replace(tmp, path)  # atomic on POSIX


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class CorrelationStore(Protocol):
    """Minimal persistence contract for correlation markers."""

    def add(self, nonce: str) -> None: ...

    def consume(self, nonce: str) -> bool:
        """Return *True* exactly once for a live marker, *False* otherwise."""
        ...


# --------------------------------------------------------------------------- #
# In-memory implementation                                                    #
# --------------------------------------------------------------------------- #


class MemoryCorrelationStore(CorrelationStore):
    """Process-local marker store with time-based expiry."""

    def __init__(
        self,
        *,
        ttl_seconds: int = 900,
        maxsize: int = 100_000,
        clock: Clock = default_clock,
    ) -> None:
        self._markers: TTLCache[str, bool] = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=clock)
        self._lock = threading.Lock()

    def add(self, nonce: str) -> None:
        with self._lock:
            self._markers[nonce] = True

    def consume(self, nonce: str) -> bool:
        with self._lock:
            return self._markers.pop(nonce, None) is not None

    def __len__(self) -> int:
        with self._lock:
            self._markers.expire()
            return len(self._markers)


# --------------------------------------------------------------------------- #
# Disk implementation                                                         #
# --------------------------------------------------------------------------- #


class DiskCorrelationStore(CorrelationStore):
    """JSON-file implementation of :class:`CorrelationStore`."""

    def __init__(
        self,
        base_dir: str | os.PathLike | None = None,
        *,
        ttl_seconds: int = 900,
        clock: Clock = default_clock,
    ) -> None:
        self.base_dir = Path(
            base_dir
            or os.getenv("OAUTH_CORRELATION_DIR")
            or Path.home() / ".oauth-codeflow" / "correlation"
        ).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    # file names are hashed so raw nonces never hit the filesystem
    def _marker_path(self, nonce: str) -> Path:
        return self.base_dir / "markers" / f"{_hash(nonce)}.json"

    def _consumed_path(self, nonce: str) -> Path:
        return self.base_dir / "markers" / "consumed" / f"{_hash(nonce)}.json"

    def add(self, nonce: str) -> None:
        rec = {"created_at": int(self._clock()), "ttl_seconds": self.ttl_seconds}
        _atomic_write(self._marker_path(nonce), rec)

    def consume(self, nonce: str) -> bool:
        """Atomically move the marker aside; only the winning caller sees it."""
        src = self._marker_path(nonce)
        dst = self._consumed_path(nonce)
        dst.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.replace(src, dst)  # fails if a concurrent consumer won
        except FileNotFoundError:
            return False
        try:
            with dst.open(encoding="utf-8") as fh:
                data = json.load(fh)
            created_at = int(data["created_at"])
            ttl = int(data.get("ttl_seconds", self.ttl_seconds))
        except (OSError, ValueError, TypeError, KeyError):
            _LOG.warning("Unreadable correlation marker %s", dst.name)
            return False
        finally:
            dst.unlink(missing_ok=True)
        age = int(self._clock()) - created_at
        if age > ttl:
            _LOG.debug("Correlation marker expired %ss ago", age - ttl)
            return False
        return True

    def cleanup_expired(self) -> int:
        """Delete stale markers and return how many were removed."""
        markers = self.base_dir / "markers"
        if not markers.exists():
            return 0
        removed = 0
        now = int(self._clock())
        for p in markers.glob("*.json"):
            try:
                with p.open(encoding="utf-8") as fh:
                    data = json.load(fh)
                ttl = int(data.get("ttl_seconds", self.ttl_seconds))
                if (now - int(data.get("created_at", 0))) > ttl:
                    p.unlink(missing_ok=True)
                    removed += 1
            except (OSError, ValueError, TypeError, AttributeError):  # pragma: no cover
                continue
        return removed
