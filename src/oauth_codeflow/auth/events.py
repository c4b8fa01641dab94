"""Extension hooks for the OAuth handler.

Providers plug their behaviour in here without touching the protocol core.
Each hook is an ``async`` callable receiving a context object; hooks return
nothing and communicate by mutating the context:

``on_redirect_to_authorization_endpoint(RedirectContext)``
    Rewrite ``context.redirect_uri`` or set ``context.response`` to replace
    the 302 redirect entirely.
``on_creating_ticket(CreatingTicketContext)``
    Enrich ``context.identity`` (typically from a user-info endpoint), swap
    ``context.ticket`` or call ``context.reject()``.
``on_ticket_received(TicketReceivedContext)``
    Sign the user in; set ``context.response`` to override the default
    redirect to ``context.return_uri``.
``on_remote_failure(RemoteFailureContext)``
    Render the failure; set ``context.response`` to override the default
    error page.

Exceptions raised by hooks are not caught by the handler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

import httpx
from starlette.requests import Request
from starlette.responses import Response

from oauth_codeflow.auth.models import (
    AuthenticationTicket,
    AuthProperties,
    Identity,
    TokenResponse,
)
from oauth_codeflow.auth.options import OAuthOptions

_LOG = logging.getLogger("oauth-codeflow.auth.events")


@dataclass
class RedirectContext:
    request: Request
    options: OAuthOptions
    properties: AuthProperties
    redirect_uri: str
    response: Response | None = None


@dataclass
class CreatingTicketContext:
    ticket: AuthenticationTicket | None
    request: Request
    options: OAuthOptions
    backchannel: httpx.AsyncClient
    token_response: TokenResponse

    @property
    def identity(self) -> Identity | None:
        return self.ticket.identity if self.ticket else None

    @property
    def properties(self) -> AuthProperties | None:
        return self.ticket.properties if self.ticket else None

    @property
    def access_token(self) -> str | None:
        return self.token_response.access_token

    @property
    def refresh_token(self) -> str | None:
        return self.token_response.refresh_token

    @property
    def token_type(self) -> str | None:
        return self.token_response.token_type

    def reject(self) -> None:
        """Decline the sign-in; the callback then fails."""
        self.ticket = None

    async def fetch_user_information(self) -> dict[str, Any]:
        """GET the configured user-info endpoint with the access token.

        Raises
        ------
        ValueError
            If no ``user_information_endpoint`` is configured.
        httpx.HTTPError
            On transport failures or a non-success status.
        """
        endpoint = self.options.user_information_endpoint
        if not endpoint:
            raise ValueError("user_information_endpoint is not configured")
        resp = await self.backchannel.get(
            endpoint,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
            },
        )
        resp.raise_for_status()
        payload = resp.json()
        if not isinstance(payload, dict):
            raise ValueError("user information response is not a JSON object")
        return payload

    def map_claims(self, payload: Mapping[str, Any]) -> int:
        """Add a claim per ``options.claim_map`` key present in *payload*.

        Returns the number of claims added.
        """
        if self.identity is None:
            return 0
        added = 0
        for json_key, claim_type in self.options.claim_map.items():
            value = payload.get(json_key)
            if value is None or isinstance(value, (dict, list)):
                continue
            self.identity.add_claim(claim_type, str(value), self.options.issuer)
            added += 1
        return added


@dataclass
class TicketReceivedContext:
    request: Request
    options: OAuthOptions
    ticket: AuthenticationTicket
    return_uri: str
    response: Response | None = None


@dataclass
class RemoteFailureContext:
    request: Request
    options: OAuthOptions
    failure: str
    properties: AuthProperties | None = None
    response: Response | None = None


Hook = Callable[[Any], Awaitable[None]]


class OAuthEvents:
    """Holder for the optional hooks; unset hooks are no-ops."""

    def __init__(
        self,
        *,
        on_redirect_to_authorization_endpoint: Hook | None = None,
        on_creating_ticket: Hook | None = None,
        on_ticket_received: Hook | None = None,
        on_remote_failure: Hook | None = None,
    ) -> None:
        self.on_redirect_to_authorization_endpoint = on_redirect_to_authorization_endpoint
        self.on_creating_ticket = on_creating_ticket
        self.on_ticket_received = on_ticket_received
        self.on_remote_failure = on_remote_failure

    async def redirect_to_authorization_endpoint(self, context: RedirectContext) -> None:
        if self.on_redirect_to_authorization_endpoint is not None:
            await self.on_redirect_to_authorization_endpoint(context)

    async def creating_ticket(self, context: CreatingTicketContext) -> None:
        if self.on_creating_ticket is not None:
            await self.on_creating_ticket(context)

    async def ticket_received(self, context: TicketReceivedContext) -> None:
        if self.on_ticket_received is not None:
            await self.on_ticket_received(context)

    async def remote_failure(self, context: RemoteFailureContext) -> None:
        if self.on_remote_failure is not None:
            await self.on_remote_failure(context)
        else:
            _LOG.warning("Remote authentication failed: %s", context.failure)
