"""Browser-facing OAuth endpoints.

Handlers are intentionally thin:

1. Parse and validate HTTP-layer parameters.
2. Delegate the protocol to ``OAuthHandler``.
3. Return the resulting Starlette ``Response``.

Two routes are produced: a login route that issues the challenge and the
callback route mounted at ``options.callback_path``.

SECURITY NOTE
-------------
• No raw secrets (state, codes, tokens, client secrets) are ever logged.
• ``return_url`` must be a local path so the login route cannot be used as an
  open redirect.
"""

from __future__ import annotations

import logging

import anyio
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from oauth_codeflow.auth.handler import OAuthHandler
from oauth_codeflow.auth.models import AuthProperties

_LOG = logging.getLogger("oauth-codeflow.auth.routes")


def _is_local_path(url: str) -> bool:
    return url.startswith("/") and not url.startswith("//") and "\\" not in url


async def _cancel_on_disconnect(request: Request, scope: anyio.CancelScope) -> None:
    """Cancel *scope* once the client goes away."""
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            _LOG.info(
                "Client disconnected during callback request_id=%s",
                getattr(request.state, "request_id", "-"),
            )
            scope.cancel()
            return


def auth_routes(handler: OAuthHandler, *, login_path: str = "/login") -> list[Route]:
    """Return the login and callback routes bound to *handler*."""

    # ----- GET <login_path>?return_url=/somewhere ------------------------ #
    async def _login(request: Request) -> Response:  # noqa: D401
        return_url = request.query_params.get("return_url") or "/"
        if not _is_local_path(return_url):
            return JSONResponse({"error": "return_url must be a local path"}, status_code=400)
        return await handler.challenge(request, AuthProperties(redirect_uri=return_url))

    # ----- GET <callback_path> ------------------------------------------- #
    async def _callback(request: Request) -> Response:  # noqa: D401
        response: Response | None = None
        async with anyio.create_task_group() as tg:
            tg.start_soon(_cancel_on_disconnect, request, tg.cancel_scope)
            response = await handler.handle_callback(request)
            tg.cancel_scope.cancel()
        if response is None:
            # nobody is listening any more; the status is for access logs only
            return Response(status_code=400)
        return response

    return [
        Route(login_path, _login, methods=["GET"], name="oauth_login"),
        Route(handler.options.callback_path or "", _callback, methods=["GET"], name="oauth_callback"),
    ]
