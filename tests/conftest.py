"""Shared fixtures for the OAuth handler tests.

Everything is CI-safe: the token and user-info endpoints are served by an
``httpx.MockTransport`` and requests are built straight from ASGI scopes.
"""

from __future__ import annotations

from typing import Any, Callable
from urllib.parse import parse_qs, urlencode, urlparse

import httpx
import pytest
from starlette.requests import Request
from starlette.responses import Response

from oauth_codeflow.auth.events import OAuthEvents
from oauth_codeflow.auth.handler import OAuthHandler
from oauth_codeflow.auth.options import OAuthOptions

NOW = 1_700_000_000.0  # 2023-11-14T22:13:20Z
HOST = "app.example.com"
CALLBACK_PATH = "/signin-oauth"
TOKEN_ENDPOINT = "https://idp.example.com/oauth/token"
USERINFO_ENDPOINT = "https://idp.example.com/userinfo"
STATE_KEY = b"k" * 32


def fake_clock() -> float:
    return NOW


def make_request(
    path: str = "/private",
    query: dict[str, str] | None = None,
    cookies: dict[str, str] | None = None,
    *,
    scheme: str = "https",
    host: str = HOST,
) -> Request:
    """Return a Starlette GET request for *path* on *host*."""
    headers = [(b"host", host.encode())]
    if cookies:
        header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        headers.append((b"cookie", header.encode()))
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": scheme,
        "server": (host, 443 if scheme == "https" else 80),
        "path": path,
        "root_path": "",
        "query_string": urlencode(query or {}).encode(),
        "headers": headers,
    }
    return Request(scope)


def set_cookies(response: Response) -> dict[str, str]:
    """Return ``{name: value}`` for every Set-Cookie header on *response*."""
    cookies: dict[str, str] = {}
    for header in response.headers.getlist("set-cookie"):
        name, _, rest = header.partition("=")
        cookies[name] = rest.split(";", 1)[0].strip('"')
    return cookies


def query_of(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


class TokenEndpoint:
    """Programmable stand-in for the authorization server's back-channel."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.token_response: httpx.Response = httpx.Response(
            200, json={"access_token": "tok1", "expires_in": "3600"}
        )
        self.userinfo_response: httpx.Response = httpx.Response(
            200, json={"id": 42, "login": "octocat", "email": "octo@example.com"}
        )
        self.handler: Callable[[httpx.Request], Any] | None = None

    def __call__(self, request: httpx.Request) -> Any:
        self.calls.append(request)
        if self.handler is not None:
            return self.handler(request)
        if str(request.url) == USERINFO_ENDPOINT:
            return self.userinfo_response
        return self.token_response

    @property
    def token_calls(self) -> list[httpx.Request]:
        return [c for c in self.calls if str(c.url) == TOKEN_ENDPOINT]

    def form(self, index: int = 0) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(self.token_calls[index].content.decode()).items()}


def build_options(**overrides: Any) -> OAuthOptions:
    values: dict[str, Any] = {
        "client_id": "client-123",
        "client_secret": "s3cret",
        "authorization_endpoint": "https://idp.example.com/oauth/authorize",
        "token_endpoint": TOKEN_ENDPOINT,
        "callback_path": CALLBACK_PATH,
        "scopes": ("read:user", "user:email"),
        "save_tokens": True,
        "user_information_endpoint": USERINFO_ENDPOINT,
        "claim_map": {"id": "sub", "login": "name", "email": "email"},
    }
    values.update(overrides)
    return OAuthOptions(**values)


@pytest.fixture()
def endpoint() -> TokenEndpoint:
    return TokenEndpoint()


@pytest.fixture()
def events() -> OAuthEvents:
    return OAuthEvents()


@pytest.fixture()
def options() -> OAuthOptions:
    return build_options()


@pytest.fixture()
def handler(options: OAuthOptions, endpoint: TokenEndpoint, events: OAuthEvents) -> OAuthHandler:
    return OAuthHandler.with_key(
        options,
        STATE_KEY,
        events=events,
        clock=fake_clock,
        backchannel_transport=httpx.MockTransport(endpoint),
    )


async def start_flow(handler: OAuthHandler, properties=None) -> tuple[str, dict[str, str]]:
    """Issue a challenge and return ``(state, correlation cookies)``."""
    response = await handler.challenge(make_request("/private"), properties)
    return query_of(response.headers["location"])["state"], set_cookies(response)
