"""Build handler configuration from environment variables.

Variables are read under a prefix (``OAUTH`` by default) so several schemes
can be configured side by side, e.g. ``GITHUB_CLIENT_ID`` with
``prefix="GITHUB"``.

``<P>_CLIENT_ID`` / ``<P>_CLIENT_SECRET``
    Client credentials registered with the authorization server.
``<P>_AUTHORIZATION_ENDPOINT`` / ``<P>_TOKEN_ENDPOINT``
    Remote endpoints.
``<P>_CALLBACK_PATH``
    Local callback path; required.
``<P>_SCOPE``
    Scopes separated by spaces and/or commas; order is kept.
``<P>_BACKCHANNEL_TIMEOUT``
    Seconds, default 60.
``<P>_SAVE_TOKENS``
    Truthy value keeps tokens in the ticket properties.
``<P>_SCHEME`` / ``<P>_USER_INFORMATION_ENDPOINT``
    Optional scheme name and user-info endpoint.
``<P>_STATE_KEY``
    URL-safe base64 AES key (16, 24 or 32 bytes) protecting ``state``.
``<P>_CORRELATION_DIR``
    Share correlation markers through this directory instead of memory.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from typing import Any, Final, Tuple

from oauth_codeflow.auth.errors import ConfigurationError
from oauth_codeflow.auth.handler import OAuthHandler
from oauth_codeflow.auth.options import DEFAULT_SCHEME, OAuthOptions
from oauth_codeflow.auth.protection import AesGcmProtector
from oauth_codeflow.auth.store import (
    CorrelationStore,
    DiskCorrelationStore,
    MemoryCorrelationStore,
)

logger = logging.getLogger("oauth-codeflow.utils.environment")

_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def _env(prefix: str, key: str) -> str | None:
    value = os.getenv(f"{prefix}_{key}")
    return value.strip() if value is not None else None


def _split_scopes(raw: str | None) -> tuple[str, ...]:
    return tuple((raw or "").replace(",", " ").split())


def options_from_env(prefix: str = "OAUTH") -> OAuthOptions:
    """Return validated :class:`OAuthOptions` read from ``{prefix}_*``.

    Raises
    ------
    ConfigurationError
        If a required variable is missing or a value cannot be parsed.
    """
    timeout_raw = _env(prefix, "BACKCHANNEL_TIMEOUT")
    try:
        timeout = float(timeout_raw) if timeout_raw else 60.0
    except ValueError:
        raise ConfigurationError(
            "backchannel_timeout",
            f"{prefix}_BACKCHANNEL_TIMEOUT must be a number of seconds.",
        ) from None

    options = OAuthOptions(
        client_id=_env(prefix, "CLIENT_ID") or "",
        client_secret=_env(prefix, "CLIENT_SECRET") or "",
        authorization_endpoint=_env(prefix, "AUTHORIZATION_ENDPOINT") or "",
        token_endpoint=_env(prefix, "TOKEN_ENDPOINT") or "",
        callback_path=_env(prefix, "CALLBACK_PATH"),
        scopes=_split_scopes(_env(prefix, "SCOPE")),
        backchannel_timeout=timeout,
        save_tokens=_truthy(_env(prefix, "SAVE_TOKENS")),
        scheme_name=_env(prefix, "SCHEME") or DEFAULT_SCHEME,
        user_information_endpoint=_env(prefix, "USER_INFORMATION_ENDPOINT") or None,
    )
    logger.info(
        "Loaded OAuth options scheme=%s scopes=%s save_tokens=%s",
        options.scheme_name,
        options.format_scope() or "-",
        options.save_tokens,
    )
    return options


def state_key_from_env(prefix: str = "OAUTH") -> bytes:
    """Return the state protection key, generating a transient one if unset."""
    raw = _env(prefix, "STATE_KEY")
    if not raw:
        # Ephemeral key – suitable for single-instance dev setups
        logger.warning(
            "Environment variable %s_STATE_KEY not set – generated transient key. "
            "In-flight sign-ins will fail after process restart.",
            prefix,
        )
        return AesGcmProtector.generate_key()
    try:
        key = base64.urlsafe_b64decode(raw + "=" * ((-len(raw)) % 4))
    except (ValueError, binascii.Error):
        raise ConfigurationError("state_key", f"{prefix}_STATE_KEY is not valid base64.") from None
    if len(key) not in (16, 24, 32):
        raise ConfigurationError("state_key", f"{prefix}_STATE_KEY must decode to 16, 24 or 32 bytes.")
    return key


def correlation_store_from_env(options: OAuthOptions, prefix: str = "OAUTH") -> CorrelationStore:
    """Disk store when ``{prefix}_CORRELATION_DIR`` is set, memory otherwise."""
    base_dir = _env(prefix, "CORRELATION_DIR")
    if base_dir:
        logger.info("Using on-disk correlation store")
        return DiskCorrelationStore(base_dir, ttl_seconds=options.correlation_cookie_lifetime)
    return MemoryCorrelationStore(ttl_seconds=options.correlation_cookie_lifetime)


def handler_from_env(prefix: str = "OAUTH", **kwargs: Any) -> OAuthHandler:
    """Assemble an :class:`OAuthHandler` entirely from the environment."""
    options = options_from_env(prefix)
    kwargs.setdefault("correlation_store", correlation_store_from_env(options, prefix))
    return OAuthHandler.with_key(options, state_key_from_env(prefix), **kwargs)
