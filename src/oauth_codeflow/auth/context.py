from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from starlette.requests import Request
from starlette.responses import Response


@dataclass
class OAuthRequestContext:
    """
    Per-request view used by the handler.
    Cookie changes are queued here and written onto whichever response the
    flow finally produces, since hooks may replace that response.
    """

    request: Request
    _cookie_ops: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)

    @property
    def is_https(self) -> bool:
        return self.request.url.scheme == "https"

    @property
    def path_base(self) -> str:
        return self.request.scope.get("root_path", "") or ""

    @property
    def current_uri(self) -> str:
        return str(self.request.url)

    def build_redirect_uri(self, path: str) -> str:
        """Absolute URL for *path* on the host the request arrived at."""
        url = self.request.url
        return f"{url.scheme}://{url.netloc}{self.path_base}{path}"

    def set_cookie(self, key: str, value: str, **kwargs: Any) -> None:
        self._cookie_ops.append(("set", key, {"value": value, **kwargs}))

    def delete_cookie(self, key: str, **kwargs: Any) -> None:
        self._cookie_ops.append(("delete", key, kwargs))

    def apply_cookies(self, response: Response) -> Response:
        for op, key, kwargs in self._cookie_ops:
            if op == "set":
                response.set_cookie(key, **kwargs)
            else:
                response.delete_cookie(key, **kwargs)
        self._cookie_ops.clear()
        return response
