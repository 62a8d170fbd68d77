"""FastAPI / Starlette adapter."""

import json
import logging
from collections.abc import Mapping
from typing import Any, Optional

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .base import HttpPlatformAdapter, HttpRequestData, HttpResponseWrapper
from .platform_detector import register_platform

logger = logging.getLogger(__name__)


class StarletteResponseWrapper(HttpResponseWrapper):
    """Builds a Starlette response, or fills one supplied by the caller."""

    def __init__(self, response: Optional[Response] = None):
        super().__init__()
        self._response = response

    def _forward_status(self, code: int) -> None:
        if self._response is not None:
            self._response.status_code = code

    def _forward_header(self, name: str, value: str) -> None:
        if self._response is not None:
            self._response.headers[name] = value

    def send(self, body: Any) -> Response:
        if isinstance(body, (dict, list)):
            return self.json(body)
        if self._response is not None:
            return self._fill(HttpPlatformAdapter._to_bytes(body if body is not None else b""), None)
        self._native = Response(
            content=body if body is not None else b"",
            status_code=self._status_code,
            headers=self._headers,
        )
        return self._native

    def json(self, body: Any) -> Response:
        if self._response is not None:
            content = json.dumps(body, separators=(",", ":")).encode("utf-8")
            return self._fill(content, "application/json")
        self._native = JSONResponse(
            content=body,
            status_code=self._status_code,
            headers=self._headers,
        )
        return self._native

    def _fill(self, content: bytes, content_type: Optional[str]) -> Response:
        self._response.body = content
        self._response.headers["content-length"] = str(len(content))
        if content_type:
            self._response.headers["content-type"] = content_type
        self._native = self._response
        return self._native


@register_platform("starlette")
class StarletteHttpAdapter(HttpPlatformAdapter):
    """Adapter for FastAPI/Starlette ``Request`` objects"""

    platform_name = "starlette"

    async def extract_request(self, req: Request) -> HttpRequestData:
        raw_body = await self.get_raw_body(req)
        return HttpRequestData(
            method=req.method.upper(),
            url=str(req.url),
            path=req.url.path,
            headers={k.lower(): v for k, v in req.headers.items()},
            body=self._parse_json(raw_body),
            raw_body=raw_body,
            query=dict(req.query_params),
        )

    def wrap_response(self, res: Optional[Response] = None) -> StarletteResponseWrapper:
        return StarletteResponseWrapper(res)

    async def get_raw_body(self, req: Request) -> bytes:
        captured = getattr(req.state, "raw_body", None)
        if captured is not None:
            return self._to_bytes(captured)
        try:
            # Starlette caches the body after the first read
            return await req.body()
        except RuntimeError:
            # Stream consumed upstream without caching
            return self._reserialize(getattr(req.state, "parsed_body", None))

    def is_compatible(self, req: Any) -> bool:
        scope = getattr(req, "scope", None)
        return (
            isinstance(scope, Mapping)
            and scope.get("type") == "http"
            and callable(getattr(req, "receive", None))
        )
