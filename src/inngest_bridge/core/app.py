"""
inngest-bridge - Application wiring

``InngestBridge`` assembles the registry, services and webhook controller
from settings, and mounts the endpoint into a FastAPI or aiohttp app.
"""

from contextlib import asynccontextmanager
from typing import Any, Callable, List, Optional, Sequence

import httpx
from aiohttp import web
from fastapi import APIRouter, FastAPI
import logging

from .config import Settings, get_cached_settings
from .constants import SDK_VERSION
from .development import DevelopmentMode
from .logging import configure_logging
from ..api.controller import WebhookController
from ..api.endpoints.inngest import build_router, setup_aiohttp
from ..schemas.functions import FunctionMetadata
from ..services.event_client import InngestEventClient
from ..services.execution_context import ExecutionContextService
from ..services.function_registry import FunctionRegistry, get_function_config, inngest_function
from ..services.signature_verification import SignatureVerificationService

logger = logging.getLogger(__name__)


class InngestBridge:
    """One bridge per application: functions, services and the webhook."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[FunctionRegistry] = None,
        event_client: Optional[InngestEventClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_cached_settings()
        self.development_mode = DevelopmentMode(self.settings)
        self.registry = registry or FunctionRegistry()
        self.event_client = event_client or InngestEventClient(
            self.settings, self.development_mode, http_client=http_client
        )
        self.signature_service = SignatureVerificationService(self.settings, self.development_mode)
        self.execution_service = ExecutionContextService(
            self.settings, self.development_mode, event_client=self.event_client
        )
        self.controller = WebhookController(
            self.settings,
            self.registry,
            self.execution_service,
            self.signature_service,
            self.development_mode,
            event_client=self.event_client,
        )

    def register(self, config: Any, handler: Callable) -> FunctionMetadata:
        """Register a plain function explicitly."""
        return self.registry.register(config, handler)

    def function(self, **config: Any) -> Callable:
        """Decorator registering a module-level function immediately."""
        def decorator(func: Callable) -> Callable:
            inngest_function(**config)(func)
            self.registry.register(get_function_config(func), func)
            return func
        return decorator

    def discover(self, *instances: Any, strict: bool = False) -> int:
        """Register the decorated methods of ``instances``."""
        return self.registry.discover(instances, strict=strict)

    async def send(self, events: Any) -> List[str]:
        """Send events outside of a run."""
        return await self.event_client.send(events)

    def event_schema(self, event_name: str) -> Callable:
        """Class decorator registering a pydantic model as the data schema of ``event_name``."""
        def decorator(schema: Any) -> Any:
            self.event_client.register_event_schema(event_name, schema)
            return schema
        return decorator

    async def handle(self, native_request: Any, native_response: Any = None) -> Any:
        return await self.controller.handle(native_request, native_response)

    def startup(self) -> None:
        """Validate configuration and registrations; fail fast in production."""
        self.settings.validate_startup()
        self.development_mode.announce()
        if self.settings.SIGNING_KEY:
            self.signature_service.validate_signature_config()
        self.registry.validate_functions()
        logger.info(
            f"{self.settings.get_config_summary()} - "
            f"{self.registry.get_function_count()} function(s) at {self.settings.ENDPOINT}"
        )

    async def shutdown(self) -> None:
        await self.event_client.aclose()
        logger.info("Inngest bridge stopped")

    def fastapi_router(self, endpoint: Optional[str] = None) -> APIRouter:
        return build_router(self.controller, endpoint)

    def attach_aiohttp(self, app: web.Application, endpoint: Optional[str] = None) -> None:
        """Mount the webhook on an aiohttp app, with startup/cleanup hooks."""
        setup_aiohttp(app, self.controller, endpoint)

        async def on_startup(_: web.Application) -> None:
            self.startup()

        async def on_cleanup(_: web.Application) -> None:
            await self.shutdown()

        app.on_startup.append(on_startup)
        app.on_cleanup.append(on_cleanup)


def create_app(
    bridge: Optional[InngestBridge] = None,
    instances: Sequence[Any] = (),
) -> FastAPI:
    """Create a FastAPI application serving the bridge."""
    bridge = bridge or InngestBridge()
    if instances:
        bridge.discover(*instances)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        configure_logging(bridge.settings)
        logger.info(f"Starting inngest-bridge v{SDK_VERSION} for app {bridge.settings.APP_ID}")
        bridge.startup()

        yield

        # Shutdown
        await bridge.shutdown()

    app = FastAPI(
        title=f"{bridge.settings.APP_ID} (inngest-bridge)",
        version=SDK_VERSION,
        lifespan=lifespan,
    )
    app.state.inngest = bridge
    app.include_router(bridge.fastapi_router())
    return app
