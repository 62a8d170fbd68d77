"""Adapter registry and structural platform detection"""
import logging
from typing import Any, Dict, List, Optional, Type

from ..core.exceptions import ConfigError
from .base import HttpPlatformAdapter

logger = logging.getLogger(__name__)


class PlatformDetector:
    """Registry of HTTP platform adapters.

    Detection is structural: each adapter inspects the request object's
    shape, so no web framework needs to be importable for another to work.
    """

    _adapters: Dict[str, Type[HttpPlatformAdapter]] = {}
    _instances: Dict[str, HttpPlatformAdapter] = {}

    @classmethod
    def register(cls, name: str, adapter_class: Type[HttpPlatformAdapter]):
        """Register a platform adapter"""
        if not issubclass(adapter_class, HttpPlatformAdapter):
            raise ValueError(f"{adapter_class} must inherit from HttpPlatformAdapter")

        cls._adapters[name] = adapter_class
        cls._instances.pop(name, None)
        logger.debug(f"Registered HTTP adapter for {name}: {adapter_class.__name__}")

    @classmethod
    def get_platform_adapter(cls, name: str) -> HttpPlatformAdapter:
        """Get the (shared) adapter instance for a platform"""
        adapter = cls._instances.get(name)
        if adapter is None:
            adapter_class = cls._adapters.get(name)
            if adapter_class is None:
                raise ConfigError(
                    f"Unsupported HTTP platform: {name}. "
                    f"Available: {', '.join(cls.get_available_platforms())}",
                    field="platform",
                )
            adapter = adapter_class()
            cls._instances[name] = adapter
        return adapter

    @classmethod
    def detect_from_request(cls, req: Any) -> Optional[str]:
        """Name of the first platform whose adapter accepts ``req``"""
        for name in cls._adapters:
            if cls.get_platform_adapter(name).is_compatible(req):
                return name
        return None

    @classmethod
    def create_adapter_from_request(cls, req: Any) -> HttpPlatformAdapter:
        """Adapter for ``req``; raises ``ConfigError`` for unknown shapes"""
        name = cls.detect_from_request(req)
        if name is None:
            raise ConfigError(
                f"Unable to detect HTTP platform for request of type {type(req).__name__}. "
                f"Supported: {', '.join(cls.get_available_platforms())}",
                field="platform",
            )
        return cls.get_platform_adapter(name)

    @classmethod
    def get_available_platforms(cls) -> List[str]:
        return list(cls._adapters.keys())

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._adapters


def register_platform(name: str):
    """Class decorator registering an HTTP adapter under ``name``"""
    def decorator(adapter_class: Type[HttpPlatformAdapter]) -> Type[HttpPlatformAdapter]:
        PlatformDetector.register(name, adapter_class)
        adapter_class.platform_name = name
        return adapter_class
    return decorator
