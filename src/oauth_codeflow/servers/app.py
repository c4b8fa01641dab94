"""Starlette application factory for the OAuth sign-in endpoints."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from oauth_codeflow.auth.handler import OAuthHandler
from oauth_codeflow.servers.request_id import RequestIdMiddleware
from oauth_codeflow.servers.routes import auth_routes
from oauth_codeflow.utils.environment import handler_from_env

logger = logging.getLogger("oauth-codeflow.server.app")


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


def create_app(
    handler: OAuthHandler | None = None,
    *,
    login_path: str = "/login",
    debug: bool = False,
) -> Starlette:
    """Return a Starlette app serving *handler* (built from the env if omitted)."""
    oauth = handler or handler_from_env()

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info("OAuth sign-in app starting scheme=%s", oauth.options.scheme_name)
        try:
            yield
        finally:
            # the backchannel client is shared by all requests; close it once
            await oauth.aclose()
            logger.info("OAuth sign-in app shutdown complete.")

    routes = [
        Route("/healthz", health_check, methods=["GET"], include_in_schema=False),
        *auth_routes(oauth, login_path=login_path),
    ]
    return Starlette(
        debug=debug,
        routes=routes,
        middleware=[Middleware(RequestIdMiddleware)],
        lifespan=lifespan,
    )
