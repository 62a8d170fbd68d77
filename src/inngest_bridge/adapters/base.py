"""Platform-neutral HTTP request/response contract.

Each supported web stack gets one ``HttpPlatformAdapter`` that turns its
native request into ``HttpRequestData`` and wraps (or builds) its native
response behind ``HttpResponseWrapper``.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class HttpRequestData:
    """Canonical request shape consumed by the webhook controller."""
    method: str
    url: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    raw_body: bytes = b""
    query: Dict[str, str] = field(default_factory=dict)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)


class HttpResponseWrapper(ABC):
    """Chainable response builder forwarding to a backend-native response."""

    def __init__(self):
        self._status_code = 200
        self._headers: Dict[str, str] = {}
        self._native: Any = None

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    @property
    def native(self) -> Any:
        """Backend-native response; available after ``send`` or ``json``."""
        return self._native

    def status(self, code: int) -> "HttpResponseWrapper":
        self._status_code = code
        self._forward_status(code)
        return self

    def header(self, name: str, value: str) -> "HttpResponseWrapper":
        self._headers[name] = value
        self._forward_header(name, value)
        return self

    @abstractmethod
    def send(self, body: Any) -> Any:
        """Send a raw body (bytes or text); returns the native response."""
        pass

    @abstractmethod
    def json(self, body: Any) -> Any:
        """Send a JSON body; returns the native response."""
        pass

    def _forward_status(self, code: int) -> None:
        pass

    def _forward_header(self, name: str, value: str) -> None:
        pass


class HttpPlatformAdapter(ABC):
    """Abstract base class for HTTP platform adapters"""

    platform_name = "unknown"

    @abstractmethod
    async def extract_request(self, req: Any) -> HttpRequestData:
        """Normalize a native request into ``HttpRequestData``"""
        pass

    @abstractmethod
    def wrap_response(self, res: Any = None) -> HttpResponseWrapper:
        """Wrap a native response, or prepare to build one"""
        pass

    @abstractmethod
    async def get_raw_body(self, req: Any) -> bytes:
        """Exact request bytes for signature verification"""
        pass

    @abstractmethod
    def is_compatible(self, req: Any) -> bool:
        """Structural check: does this adapter understand ``req``?"""
        pass

    def get_platform_name(self) -> str:
        return self.platform_name

    # Helper methods

    @staticmethod
    def _parse_json(raw_body: bytes) -> Any:
        """Parse a JSON body; ``None`` when empty or not JSON."""
        if not raw_body:
            return None
        try:
            return json.loads(raw_body)
        except (ValueError, UnicodeDecodeError):
            return None

    def _reserialize(self, parsed_body: Any) -> bytes:
        """Last-resort raw body: re-encode an already parsed body.

        Signatures are computed over the exact bytes the orchestrator sent,
        so this only verifies when the sender used the same compact encoding.
        """
        if parsed_body is None:
            return b""
        logger.warning(
            f"[{self.platform_name}] raw body not available, re-serializing parsed body. "
            "Capture the raw body in middleware for reliable signature verification."
        )
        return json.dumps(parsed_body, separators=(",", ":")).encode("utf-8")

    @staticmethod
    def _to_bytes(value: Any) -> bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        return str(value).encode("utf-8")
