"""Request ID middleware for request tracing.

Assigns an identifier to every incoming HTTP request, stores it in
``request.state.request_id`` for handlers and auth log records, and echoes it
in the response headers.  An inbound ``X-Request-ID`` header is reused when
present so a proxy's identifier survives end to end.

Written as plain ASGI rather than ``BaseHTTPMiddleware`` so that
``http.disconnect`` messages reach the callback route untouched.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import Final

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

_HEADER_NAME: Final[str] = "X-Request-ID"
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")
_logger = logging.getLogger("oauth-codeflow.request_id")


class RequestIdMiddleware:
    """ASGI middleware that attaches a per-request identifier."""

    def __init__(self, app: ASGIApp, header_name: str = _HEADER_NAME) -> None:
        self.app = app
        self.header_name = header_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        # lifespan and websocket scopes pass straight through
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        inbound = Headers(scope=scope).get(self.header_name, "")
        # untrusted ids could inject into logs; only accept a safe charset
        request_id = inbound if _VALID_ID.match(inbound) else uuid.uuid4().hex

        scope_copy: Scope = dict(scope)
        scope_copy["state"] = {**scope.get("state", {}), "request_id": request_id}
        _logger.debug(
            "request %s %s request_id=%s",
            scope.get("method", "UNKNOWN"),
            scope.get("path", "UNKNOWN"),
            request_id,
        )

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[self.header_name] = request_id
            await send(message)

        await self.app(scope_copy, receive, send_with_id)
