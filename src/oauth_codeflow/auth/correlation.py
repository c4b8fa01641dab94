"""Anti-CSRF correlation for the authorization code flow (RFC 6749 §10.12).

On challenge a random nonce is written to three places:

1. ``properties.items[".xsrf"]`` – travels inside the protected ``state``;
2. a short-lived ``HttpOnly`` cookie scoped to the callback path – proves the
   callback comes from the same user agent;
3. a :class:`~oauth_codeflow.auth.store.CorrelationStore` marker – makes the
   nonce single-use across concurrent callbacks.

Validation succeeds only when all three agree and the marker has not been
consumed before.  Failures are reported as ``False`` and logged; nothing is
raised.  Nonces are never logged in full.
"""

from __future__ import annotations

import logging
import secrets
from typing import Final

from oauth_codeflow.auth.context import OAuthRequestContext
from oauth_codeflow.auth.log_utils import mask_sensitive
from oauth_codeflow.auth.models import AuthProperties
from oauth_codeflow.auth.options import OAuthOptions
from oauth_codeflow.auth.store import CorrelationStore

_LOG = logging.getLogger("oauth-codeflow.auth.correlation")

CORRELATION_PROPERTY: Final[str] = ".xsrf"
CORRELATION_PREFIX: Final[str] = ".oauth.correlation."
CORRELATION_MARKER: Final[str] = "N"
_NONCE_BYTES: Final[int] = 32


class CorrelationGuard:
    """Generate and validate single-use correlation nonces."""

    def __init__(self, options: OAuthOptions, store: CorrelationStore) -> None:
        self._options = options
        self._store = store

    def cookie_name(self, nonce: str) -> str:
        return f"{CORRELATION_PREFIX}{self._options.scheme_name}.{nonce}"

    def _cookie_path(self, context: OAuthRequestContext) -> str:
        return f"{context.path_base}{self._options.callback_path}"

    def generate(self, properties: AuthProperties, context: OAuthRequestContext) -> str:
        """Stamp *properties* with a fresh nonce and return it."""
        nonce = secrets.token_urlsafe(_NONCE_BYTES)
        properties.items[CORRELATION_PROPERTY] = nonce
        self._store.add(nonce)
        context.set_cookie(
            self.cookie_name(nonce),
            CORRELATION_MARKER,
            max_age=self._options.correlation_cookie_lifetime,
            path=self._cookie_path(context),
            secure=context.is_https,
            httponly=True,
            samesite="lax",
        )
        _LOG.debug("Generated correlation nonce %s", mask_sensitive(nonce, 6))
        return nonce

    def validate(self, properties: AuthProperties, context: OAuthRequestContext) -> bool:
        """Check and consume the nonce carried by *properties*."""
        nonce = properties.items.pop(CORRELATION_PROPERTY, None)
        if not nonce:
            _LOG.warning("Correlation property %s not found in state", CORRELATION_PROPERTY)
            return False

        cookie = self.cookie_name(nonce)
        if context.request.cookies.get(cookie) != CORRELATION_MARKER:
            _LOG.warning("Correlation cookie for nonce %s not found", mask_sensitive(nonce, 6))
            return False

        context.delete_cookie(
            cookie,
            path=self._cookie_path(context),
            secure=context.is_https,
            httponly=True,
            samesite="lax",
        )

        if not self._store.consume(nonce):
            _LOG.warning(
                "Correlation nonce %s already used or expired", mask_sensitive(nonce, 6)
            )
            return False
        return True
