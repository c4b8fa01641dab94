"""Back-channel authorization code exchange (RFC 6749 §4.1.3).

The exchanger issues exactly one ``POST`` to the token endpoint over the
handler's shared :class:`httpx.AsyncClient`.  It never raises for remote
problems: transport errors, timeouts, non-success statuses and unparsable
bodies all come back as :meth:`TokenResponse.failed` carrying the richest
diagnostic available.  Task cancellation is *not* converted and propagates
to the caller.

SECURITY NOTE
-------------
The client secret and the authorization code are sent in the form body and
are never logged.
"""

from __future__ import annotations

import logging
from typing import Final

import anyio
import httpx

from oauth_codeflow.auth.models import TokenResponse
from oauth_codeflow.auth.options import OAuthOptions

_LOG = logging.getLogger("oauth-codeflow.auth.backchannel")

USER_AGENT: Final[str] = "oauth-codeflow"
_FAILURE_PREFIX: Final[str] = "OAuth token endpoint failure: "


def create_backchannel(
    options: OAuthOptions, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Return the long-lived client shared by every request of a handler."""
    return httpx.AsyncClient(
        timeout=options.backchannel_timeout,
        headers={"User-Agent": USER_AGENT},
        transport=transport,
    )


def _display(resp: httpx.Response) -> str:
    headers = ", ".join(f"{k}: {v}" for k, v in resp.headers.items())
    return (
        f"Status: {resp.status_code} {resp.reason_phrase};"
        f"Headers: {headers};"
        f"Body: {resp.text};"
    )


class TokenExchanger:
    """Exchange an authorization code for tokens."""

    def __init__(self, options: OAuthOptions, client: httpx.AsyncClient) -> None:
        self._options = options
        self._client = client

    async def exchange(self, code: str, redirect_uri: str) -> TokenResponse:
        """POST the code to the token endpoint and parse the JSON reply.

        Parameters
        ----------
        code:
            Authorization code received on the callback.
        redirect_uri:
            Must be byte-identical to the ``redirect_uri`` sent with the
            challenge (RFC 6749 §4.1.3).
        """
        form = {
            "client_id": self._options.client_id,
            "redirect_uri": redirect_uri,
            "client_secret": self._options.client_secret,
            "code": code,
            "grant_type": "authorization_code",
        }
        timeout = self._options.backchannel_timeout
        try:
            with anyio.fail_after(timeout):
                resp = await self._client.post(
                    self._options.token_endpoint,
                    data=form,
                    headers={"Accept": "application/json"},
                )
        except TimeoutError:
            _LOG.warning("Token request timed out after %ss", timeout)
            return TokenResponse.failed(f"{_FAILURE_PREFIX}Timed out after {timeout}s.")
        except httpx.HTTPError as exc:
            _LOG.warning("Token request failed: %s", exc.__class__.__name__)
            return TokenResponse.failed(f"{_FAILURE_PREFIX}{exc.__class__.__name__}: {exc}")

        if not resp.is_success:
            _LOG.warning("Token endpoint returned %s", resp.status_code)
            return TokenResponse.failed(_FAILURE_PREFIX + _display(resp))

        try:
            payload = resp.json()
        except ValueError:
            _LOG.warning("Token endpoint returned a body that is not JSON")
            return TokenResponse.failed(f"{_FAILURE_PREFIX}Malformed JSON. {_display(resp)}")
        if not isinstance(payload, dict):
            return TokenResponse.failed(f"{_FAILURE_PREFIX}Expected a JSON object. {_display(resp)}")

        _LOG.debug("Token endpoint returned %s field(s)", len(payload))
        return TokenResponse.success(payload)
