"""HTTP platform adapters"""

from .base import HttpPlatformAdapter, HttpRequestData, HttpResponseWrapper
from .platform_detector import PlatformDetector, register_platform

# Import adapters to trigger registration
from .starlette_adapter import StarletteHttpAdapter, StarletteResponseWrapper
from .aiohttp_adapter import AiohttpHttpAdapter, AiohttpResponseWrapper

__all__ = [
    "HttpPlatformAdapter",
    "HttpRequestData",
    "HttpResponseWrapper",
    "PlatformDetector",
    "register_platform",
    "StarletteHttpAdapter",
    "StarletteResponseWrapper",
    "AiohttpHttpAdapter",
    "AiohttpResponseWrapper",
]
