"""OAuthHandler – authorization code flow for one authentication scheme.

The handler owns everything that must outlive a single request (options,
state format, correlation store, the back-channel HTTP client) and exposes
three request-level entry points:

``challenge(request, properties)``
    Unauthenticated access: stamp correlation, build the authorization URL
    and return the redirect response.
``authenticate(request)``
    Callback leg: validate the callback and return an
    :class:`~oauth_codeflow.auth.models.AuthenticateResult`.  Per-request
    failures are *returned*, never raised.
``handle_callback(request)``
    ``authenticate`` plus the ticket-received / remote-failure hooks,
    producing the final HTTP response.

Checks on the callback run in a fixed order and no network call is made
until both the state and the correlation nonce have been verified.
"""

from __future__ import annotations

import html
import logging
from urllib.parse import quote, urlencode

import httpx
from starlette.requests import Request
from starlette.responses import HTMLResponse, RedirectResponse, Response

from oauth_codeflow.auth.backchannel import TokenExchanger, create_backchannel
from oauth_codeflow.auth.clock import Clock, default_clock
from oauth_codeflow.auth.context import OAuthRequestContext
from oauth_codeflow.auth.correlation import CorrelationGuard
from oauth_codeflow.auth.events import (
    OAuthEvents,
    RedirectContext,
    RemoteFailureContext,
    TicketReceivedContext,
)
from oauth_codeflow.auth.log_utils import get_auth_logger
from oauth_codeflow.auth.models import AuthenticateResult, AuthProperties, Identity
from oauth_codeflow.auth.options import OAuthOptions
from oauth_codeflow.auth.protection import AesGcmProtector, Protector
from oauth_codeflow.auth.state import PropertiesDataFormat
from oauth_codeflow.auth.store import CorrelationStore, MemoryCorrelationStore
from oauth_codeflow.auth.tickets import TicketBuilder

_LOG = logging.getLogger("oauth-codeflow.auth.handler")

STATE_MISSING_OR_INVALID = "The oauth state was missing or invalid."
CORRELATION_FAILED = "Correlation failed."
CODE_NOT_FOUND = "Code was not found."
ACCESS_TOKEN_MISSING = "Failed to retrieve access token."
USER_INFORMATION_FAILED = "Failed to retrieve user information from remote server."


def state_purpose(options: OAuthOptions) -> str:
    """Purpose string binding protected state to one scheme."""
    return f"oauth_codeflow.OAuthHandler|{options.scheme_name}|v1"


def _remote_error(request: Request) -> str | None:
    """Return the ``error`` callback parameters joined, or ``None``."""
    query = request.query_params
    error = query.get("error")
    if not error:
        return None
    message = error
    description = query.get("error_description")
    if description:
        message += f";Description={description}"
    uri = query.get("error_uri")
    if uri:
        message += f";Uri={uri}"
    return message


def _html_page(title: str, body: str, status: int = 200) -> HTMLResponse:
    """Return a tiny success / error HTML page."""
    content = (
        "<!doctype html><html lang='en'>"
        "<head><meta charset='utf-8'><title>"
        f"{html.escape(title)}</title></head><body><h1>{html.escape(title)}</h1>"
        f"<p>{html.escape(body)}</p></body></html>"
    )
    return HTMLResponse(content, status_code=status)


class OAuthHandler:
    """Server-side half of the OAuth 2.0 authorization code grant."""

    def __init__(
        self,
        options: OAuthOptions,
        protector: Protector,
        *,
        events: OAuthEvents | None = None,
        correlation_store: CorrelationStore | None = None,
        clock: Clock = default_clock,
        backchannel_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.options = options
        self.events = events or OAuthEvents()
        self.state_format = PropertiesDataFormat(protector)
        self.correlation = CorrelationGuard(
            options,
            correlation_store
            or MemoryCorrelationStore(ttl_seconds=options.correlation_cookie_lifetime, clock=clock),
        )
        self.backchannel = create_backchannel(options, backchannel_transport)
        self.exchanger = TokenExchanger(options, self.backchannel)
        self.tickets = TicketBuilder(options, self.events, self.backchannel, clock=clock)
        _LOG.info(
            "OAuth handler ready scheme=%s callback_path=%s",
            options.scheme_name,
            options.callback_path,
        )

    @classmethod
    def with_key(cls, options: OAuthOptions, key: bytes, **kwargs) -> OAuthHandler:
        """Build a handler whose state is protected with AES-GCM under *key*."""
        return cls(options, AesGcmProtector(key, purpose=state_purpose(options)), **kwargs)

    async def aclose(self) -> None:
        await self.backchannel.aclose()

    # ------------------------------------------------------------------ #
    # Challenge                                                          #
    # ------------------------------------------------------------------ #
    def build_challenge_url(self, properties: AuthProperties, redirect_uri: str) -> str:
        """Return the authorization endpoint URL carrying the protected state."""
        params = {
            "client_id": self.options.client_id,
            "scope": self.options.format_scope(),
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "state": self.state_format.protect(properties),
        }
        base, hash_mark, fragment = self.options.authorization_endpoint.partition("#")
        sep = "&" if "?" in base else "?"
        query = urlencode(params, safe="", quote_via=quote)
        return f"{base}{sep}{query}{hash_mark}{fragment}"

    async def challenge(
        self, request: Request, properties: AuthProperties | None = None
    ) -> Response:
        """Redirect the user agent to the authorization endpoint."""
        context = OAuthRequestContext(request)
        if properties is None:
            properties = AuthProperties()
        if not properties.redirect_uri:
            properties.redirect_uri = context.current_uri

        nonce = self.correlation.generate(properties, context)
        authorization_url = self.build_challenge_url(
            properties, context.build_redirect_uri(self.options.callback_path or "")
        )
        redirect_context = RedirectContext(
            request=request,
            options=self.options,
            properties=properties,
            redirect_uri=authorization_url,
        )
        await self.events.redirect_to_authorization_endpoint(redirect_context)

        get_auth_logger(
            scheme=self.options.scheme_name,
            request_id=getattr(request.state, "request_id", None),
            nonce=nonce,
        ).info("Redirecting to authorization endpoint")
        response = redirect_context.response or RedirectResponse(
            redirect_context.redirect_uri, status_code=302
        )
        return context.apply_cookies(response)

    # ------------------------------------------------------------------ #
    # Callback                                                           #
    # ------------------------------------------------------------------ #
    async def authenticate(
        self, request: Request, context: OAuthRequestContext | None = None
    ) -> AuthenticateResult:
        """Validate the callback and exchange the code for a ticket."""
        context = context or OAuthRequestContext(request)
        log = get_auth_logger(
            scheme=self.options.scheme_name,
            request_id=getattr(request.state, "request_id", None),
        )
        query = request.query_params

        error = _remote_error(request)
        if error:
            log.info("Authorization server returned error=%s", query.get("error"))
            return AuthenticateResult.fail(error)

        properties = self.state_format.unprotect(query.get("state"))
        if properties is None:
            return AuthenticateResult.fail(STATE_MISSING_OR_INVALID)

        # OAuth2 10.12 CSRF
        if not self.correlation.validate(properties, context):
            return AuthenticateResult.fail(CORRELATION_FAILED, properties)

        code = query.get("code")
        if not code:
            return AuthenticateResult.fail(CODE_NOT_FOUND, properties)

        tokens = await self.exchanger.exchange(
            code, context.build_redirect_uri(self.options.callback_path or "")
        )
        if not tokens.ok:
            return AuthenticateResult.fail(tokens.error or "", properties)
        if not tokens.access_token:
            return AuthenticateResult.fail(ACCESS_TOKEN_MISSING, properties)

        identity = Identity(authentication_type=self.options.issuer)
        ticket = await self.tickets.build(request, identity, properties, tokens)
        if ticket is None:
            return AuthenticateResult.fail(USER_INFORMATION_FAILED, properties)

        log.info("Remote authentication succeeded")
        return AuthenticateResult.success(ticket)

    async def handle_callback(self, request: Request) -> Response:
        """Run :meth:`authenticate` and turn the result into a response."""
        context = OAuthRequestContext(request)
        result = await self.authenticate(request, context)

        response: Response
        if result.ticket is not None:
            received = TicketReceivedContext(
                request=request,
                options=self.options,
                ticket=result.ticket,
                return_uri=result.ticket.properties.redirect_uri or "/",
            )
            await self.events.ticket_received(received)
            response = received.response or RedirectResponse(received.return_uri, status_code=302)
        else:
            failure = RemoteFailureContext(
                request=request,
                options=self.options,
                failure=result.failure or "",
                properties=result.properties,
            )
            await self.events.remote_failure(failure)
            response = failure.response or _html_page(
                "Authorization failed", failure.failure, 400
            )
        return context.apply_cookies(response)
