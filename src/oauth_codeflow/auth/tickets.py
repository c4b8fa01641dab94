"""Turn a successful token response into an authentication ticket."""

from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Final

import httpx
from starlette.requests import Request

from oauth_codeflow.auth.clock import Clock, default_clock, utcnow
from oauth_codeflow.auth.events import CreatingTicketContext, OAuthEvents
from oauth_codeflow.auth.models import (
    AuthenticationTicket,
    AuthProperties,
    AuthToken,
    Identity,
    TokenResponse,
)
from oauth_codeflow.auth.options import OAuthOptions

_LOG = logging.getLogger("oauth-codeflow.auth.tickets")

# int() alone would also take "3_600" and non-ASCII digits
_INTEGER_RE: Final = re.compile(r"\s*[+-]?[0-9]+\s*", re.ASCII)


def tokens_for(response: TokenResponse, *, clock: Clock = default_clock) -> list[AuthToken]:
    """Return the tokens worth keeping from *response*.

    ``expires_at`` is ``now + expires_in`` in ISO-8601 UTC; it is left out
    when ``expires_in`` is absent or not an integer.
    """
    tokens = [AuthToken("access_token", response.access_token or "")]
    if response.refresh_token:
        tokens.append(AuthToken("refresh_token", response.refresh_token))
    if response.token_type:
        tokens.append(AuthToken("token_type", response.token_type))
    if response.expires_in and _INTEGER_RE.fullmatch(response.expires_in):
        try:
            expires_at = utcnow(clock) + timedelta(seconds=int(response.expires_in))
        except OverflowError:
            _LOG.debug("Ignoring out-of-range expires_in")
        else:
            tokens.append(AuthToken("expires_at", expires_at.isoformat()))
    elif response.expires_in:
        _LOG.debug("Ignoring non-integer expires_in")
    return tokens


class TicketBuilder:
    """Build the ticket and hand it to ``on_creating_ticket``."""

    def __init__(
        self,
        options: OAuthOptions,
        events: OAuthEvents,
        backchannel: httpx.AsyncClient,
        *,
        clock: Clock = default_clock,
    ) -> None:
        self._options = options
        self._events = events
        self._backchannel = backchannel
        self._clock = clock

    async def build(
        self,
        request: Request,
        identity: Identity,
        properties: AuthProperties,
        response: TokenResponse,
    ) -> AuthenticationTicket | None:
        if self._options.save_tokens:
            properties.store_tokens(tokens_for(response, clock=self._clock))

        ticket = AuthenticationTicket(identity, properties, self._options.scheme_name)
        context = CreatingTicketContext(
            ticket=ticket,
            request=request,
            options=self._options,
            backchannel=self._backchannel,
            token_response=response,
        )
        await self._events.creating_ticket(context)
        if context.ticket is None:
            _LOG.info("Ticket rejected by on_creating_ticket")
        return context.ticket
