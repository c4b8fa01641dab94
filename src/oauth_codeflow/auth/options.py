"""Immutable client configuration for one OAuth authentication scheme."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Final, Mapping

from oauth_codeflow.auth.errors import ConfigurationError

DEFAULT_SCHEME: Final[str] = "OAuth"
# RFC 6265 cookie-name token; the scheme is embedded in the correlation cookie
_SCHEME_NAME_RE: Final = re.compile(r"[A-Za-z0-9!#$%&'*+.^_`|~-]+")


@dataclass(frozen=True)
class OAuthOptions:
    """Options validated once when the handler is configured.

    ``callback_path`` is the path on *this* application that the
    authorization server redirects back to; it is combined with the scheme
    and host of the current request to form ``redirect_uri``.
    """

    client_id: str
    client_secret: str
    authorization_endpoint: str
    token_endpoint: str
    callback_path: str | None
    scopes: tuple[str, ...] = ()
    backchannel_timeout: float = 60.0
    save_tokens: bool = False
    scheme_name: str = DEFAULT_SCHEME
    claims_issuer: str | None = None
    user_information_endpoint: str | None = None
    # JSON key in the user-info payload -> claim type
    claim_map: Mapping[str, str] = field(default_factory=dict)
    correlation_cookie_lifetime: int = 900

    def __post_init__(self) -> None:
        if not self.callback_path:
            raise ConfigurationError("callback_path")
        if not self.callback_path.startswith("/"):
            raise ConfigurationError(
                "callback_path", "The 'callback_path' option must start with '/'."
            )
        if not self.scheme_name or not _SCHEME_NAME_RE.fullmatch(self.scheme_name):
            raise ConfigurationError(
                "scheme_name",
                "The 'scheme_name' option must be a non-empty cookie token.",
            )
        for name in ("client_id", "client_secret", "authorization_endpoint", "token_endpoint"):
            if not getattr(self, name):
                raise ConfigurationError(name)
        if self.backchannel_timeout <= 0:
            raise ConfigurationError(
                "backchannel_timeout", "The 'backchannel_timeout' option must be positive."
            )
        # lists are accepted for convenience but stored as a tuple
        object.__setattr__(self, "scopes", tuple(self.scopes))

    @property
    def issuer(self) -> str:
        return self.claims_issuer or self.scheme_name

    def format_scope(self) -> str:
        """Return the configured scopes space separated (RFC 6749 §3.3)."""
        return " ".join(self.scopes)
