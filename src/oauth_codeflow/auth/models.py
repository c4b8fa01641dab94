"""Typed records used by the OAuth handler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class AuthToken:
    """A named token value kept alongside the authentication properties."""

    name: str
    value: str


@dataclass(slots=True)
class AuthProperties:
    """State carried from the challenge to the callback.

    Instances are protected into the ``state`` query parameter and recovered
    on the callback, so everything here must survive a JSON round-trip.
    """

    items: dict[str, str] = field(default_factory=dict)
    redirect_uri: str | None = None
    tokens: list[AuthToken] = field(default_factory=list)

    def store_tokens(self, tokens: list[AuthToken]) -> None:
        """Replace the stored tokens with *tokens*."""
        self.tokens = list(tokens)

    def get_token_value(self, name: str) -> str | None:
        for token in self.tokens:
            if token.name == name:
                return token.value
        return None


@dataclass(frozen=True, slots=True)
class Claim:
    """A single statement about the authenticated subject."""

    type: str
    value: str
    issuer: str | None = None


@dataclass(slots=True)
class Identity:
    """Set of claims produced by one authentication scheme."""

    authentication_type: str | None = None
    claims: list[Claim] = field(default_factory=list)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.authentication_type)

    def add_claim(self, claim_type: str, value: str, issuer: str | None = None) -> None:
        self.claims.append(Claim(claim_type, value, issuer or self.authentication_type))

    def find_first(self, claim_type: str) -> Claim | None:
        return next((c for c in self.claims if c.type == claim_type), None)


@dataclass(slots=True)
class AuthenticationTicket:
    """Outcome of a successful remote sign-in."""

    identity: Identity
    properties: AuthProperties
    scheme_name: str


def _optional_str(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


@dataclass(frozen=True, slots=True)
class TokenResponse:
    """Result of a single authorization-code exchange attempt."""

    payload: Mapping[str, Any] | None = None
    access_token: str | None = None
    token_type: str | None = None
    refresh_token: str | None = None
    expires_in: str | None = None
    error: str | None = None

    @classmethod
    def success(cls, payload: Mapping[str, Any]) -> TokenResponse:
        """Build a response from the token endpoint's JSON object.

        ``expires_in`` is accepted as either a JSON string or a number.
        """
        return cls(
            payload=payload,
            access_token=_optional_str(payload.get("access_token")),
            token_type=_optional_str(payload.get("token_type")),
            refresh_token=_optional_str(payload.get("refresh_token")),
            expires_in=_optional_str(payload.get("expires_in")),
        )

    @classmethod
    def failed(cls, error: str) -> TokenResponse:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class AuthenticateResult:
    """Either a ticket or a human-readable failure reason."""

    ticket: AuthenticationTicket | None = None
    failure: str | None = None
    # recovered state, when the failure happened after it was unprotected
    properties: AuthProperties | None = None

    @classmethod
    def success(cls, ticket: AuthenticationTicket) -> AuthenticateResult:
        return cls(ticket=ticket, properties=ticket.properties)

    @classmethod
    def fail(cls, reason: str, properties: AuthProperties | None = None) -> AuthenticateResult:
        return cls(failure=reason, properties=properties)

    @property
    def succeeded(self) -> bool:
        return self.ticket is not None
