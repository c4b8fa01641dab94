"""State parameter codec for the OAuth 2.0 web-flow.

The *state* parameter protects the user against CSRF and carries the
application's :class:`~oauth_codeflow.auth.models.AuthProperties` through the
browser redirect.  The properties are serialised as compact JSON::

    {"v": 1, "items": {...}, "redirect_uri": "...", "tokens": [["name", "value"]]}

then passed through an injected :class:`~oauth_codeflow.auth.protection.Protector`
and base64-url encoded without padding.

The encoded value contains **no delimiters that could be interpreted as
a path or query separator**.  Decoding is strict: the string must be the
canonical encoding of the bytes it decodes to, so altering any single
character is always detected.

Logging
-------
Only the (truncated) state is ever logged; the plaintext and the key are
*never* written to logs.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, Final

from oauth_codeflow.auth.errors import ProtectionError
from oauth_codeflow.auth.log_utils import mask_sensitive
from oauth_codeflow.auth.models import AuthProperties, AuthToken
from oauth_codeflow.auth.protection import Protector

_LOG = logging.getLogger("oauth-codeflow.auth.state")

_FORMAT_VERSION: Final[int] = 1


def _b64e(data: bytes) -> str:
    """Base64-URL encode *without* padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64d(data: str) -> bytes:
    """Decode base64-URL data that may lack padding."""
    pad_len = (-len(data)) % 4
    return base64.urlsafe_b64decode(data + "=" * pad_len)


def _serialize(properties: AuthProperties) -> bytes:
    doc = {
        "v": _FORMAT_VERSION,
        "items": properties.items,
        "redirect_uri": properties.redirect_uri,
        "tokens": [[t.name, t.value] for t in properties.tokens],
    }
    return json.dumps(doc, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _is_str_pair(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) == 2
        and all(isinstance(v, str) for v in value)
    )


def _deserialize(raw: bytes) -> AuthProperties | None:
    doc = json.loads(raw.decode("utf-8"))
    if not isinstance(doc, dict) or doc.get("v") != _FORMAT_VERSION:
        return None

    items = doc.get("items")
    redirect_uri = doc.get("redirect_uri")
    tokens = doc.get("tokens")
    if not isinstance(items, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in items.items()
    ):
        return None
    if redirect_uri is not None and not isinstance(redirect_uri, str):
        return None
    if not isinstance(tokens, list) or not all(_is_str_pair(t) for t in tokens):
        return None

    return AuthProperties(
        items=dict(items),
        redirect_uri=redirect_uri,
        tokens=[AuthToken(name, value) for name, value in tokens],
    )


class PropertiesDataFormat:
    """Protect / unprotect :class:`AuthProperties` into a URL-safe string."""

    def __init__(self, protector: Protector) -> None:
        self._protector = protector

    def protect(self, properties: AuthProperties) -> str:
        """Return the opaque state string for *properties*."""
        return _b64e(self._protector.protect(_serialize(properties)))

    def unprotect(self, protected: str | None) -> AuthProperties | None:
        """Recover the properties, or ``None`` if *protected* is not valid.

        Never raises for malformed input: tampering, truncation, foreign keys
        and unknown format versions all yield ``None``.
        """
        if not protected:
            return None
        try:
            blob = _b64d(protected)
            if _b64e(blob) != protected:
                raise ProtectionError("state is not canonically encoded")
            properties = _deserialize(self._protector.unprotect(blob))
        except (ValueError, binascii.Error, ProtectionError):
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors
            _LOG.debug("Rejected state %s", mask_sensitive(protected, 6))
            return None
        if properties is None:
            _LOG.debug("Rejected state %s with unexpected layout", mask_sensitive(protected, 6))
        return properties
