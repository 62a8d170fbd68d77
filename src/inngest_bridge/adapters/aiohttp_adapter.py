"""aiohttp adapter."""

import json
import logging
from typing import Any, Optional

from aiohttp import web

from .base import HttpPlatformAdapter, HttpRequestData, HttpResponseWrapper
from .platform_detector import register_platform

logger = logging.getLogger(__name__)


class AiohttpResponseWrapper(HttpResponseWrapper):
    """Builds an ``aiohttp.web.Response``, or fills one supplied by the caller."""

    def __init__(self, response: Optional[web.Response] = None):
        super().__init__()
        self._response = response

    def _forward_status(self, code: int) -> None:
        if self._response is not None:
            self._response.set_status(code)

    def _forward_header(self, name: str, value: str) -> None:
        if self._response is not None:
            self._response.headers[name] = value

    def send(self, body: Any) -> web.Response:
        if isinstance(body, (dict, list)):
            return self.json(body)
        if self._response is not None:
            if isinstance(body, str):
                self._response.text = body
            else:
                self._response.body = HttpPlatformAdapter._to_bytes(body if body is not None else b"")
            self._native = self._response
            return self._native
        kwargs = {"text": body} if isinstance(body, str) else {"body": body}
        self._native = web.Response(status=self._status_code, headers=self._headers, **kwargs)
        return self._native

    def json(self, body: Any) -> web.Response:
        text = json.dumps(body, separators=(",", ":"))
        if self._response is not None:
            self._response.content_type = "application/json"
            self._response.text = text
            self._native = self._response
            return self._native
        self._native = web.json_response(
            text=text,
            status=self._status_code,
            headers=self._headers,
        )
        return self._native


@register_platform("aiohttp")
class AiohttpHttpAdapter(HttpPlatformAdapter):
    """Adapter for ``aiohttp.web.Request`` objects"""

    platform_name = "aiohttp"

    async def extract_request(self, req: web.Request) -> HttpRequestData:
        raw_body = await self.get_raw_body(req)
        return HttpRequestData(
            method=req.method.upper(),
            url=str(req.url),
            path=req.path,
            headers={k.lower(): v for k, v in req.headers.items()},
            body=self._parse_json(raw_body),
            raw_body=raw_body,
            query=dict(req.query),
        )

    def wrap_response(self, res: Optional[web.Response] = None) -> AiohttpResponseWrapper:
        return AiohttpResponseWrapper(res)

    async def get_raw_body(self, req: web.Request) -> bytes:
        captured = req.get("raw_body")
        if captured is not None:
            return self._to_bytes(captured)
        if req.body_exists or req.can_read_body:
            # aiohttp caches the payload after the first read
            return await req.read()
        return self._reserialize(req.get("parsed_body"))

    def is_compatible(self, req: Any) -> bool:
        return (
            not hasattr(req, "scope")
            and hasattr(req, "match_info")
            and hasattr(req, "app")
            and callable(getattr(req, "read", None))
        )
