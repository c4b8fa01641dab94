"""Structured logging helpers for the OAuth handler.

This module purposefully restricts **which** contextual attributes are attached
to log records in order to avoid accidentally leaking secrets.  All helpers
ONLY inject the following *non-sensitive* fields:

- ``scheme``      – Authentication scheme name (``OAuth``, ``GitHub``…)
- ``request_id``  – Per-request identifier set by ``RequestIdMiddleware``
- ``nonce``       – Correlation nonce (first 6 chars kept)

Usage
-----
>>> from oauth_codeflow.auth.log_utils import get_auth_logger
>>> log = get_auth_logger(scheme="GitHub", request_id="4f1c2a")
>>> log.info("Callback received")
INFO oauth-codeflow.auth scheme=GitHub request_id=4f1c2a ...

The adapter is a thin wrapper around :class:`logging.LoggerAdapter`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping


def mask_sensitive(value: str | None, keep: int = 4) -> str:
    """Return *value* with everything but the first *keep* characters masked."""
    if not value:
        return ""
    if len(value) <= keep:
        return "*" * len(value)
    return f"{value[:keep]}{'*' * 4}"


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted auth context into log records."""

    extra_keys = ("scheme", "request_id", "nonce")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if k == "nonce" and extra and extra.get("nonce"):
                extra_clean[k] = str(extra["nonce"])[:6]
            elif extra and k in extra and extra[k] is not None:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # merge but do not overwrite call-site provided extras
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "oauth-codeflow.auth",
    scheme: str | None = None,
    request_id: str | None = None,
    nonce: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with auth context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {"scheme": scheme, "request_id": request_id, "nonce": nonce},
    )
