"""Webhook endpoint wiring for FastAPI and aiohttp."""

from typing import Any, Dict, Optional

from aiohttp import web
from fastapi import APIRouter, Request

from ..controller import WebhookController

# The controller answers every method; unsupported ones get a 405 envelope
WEBHOOK_METHODS = ["GET", "PUT", "POST", "DELETE", "PATCH"]


def build_router(controller: WebhookController, endpoint: Optional[str] = None) -> APIRouter:
    """FastAPI router serving the webhook at ``endpoint`` plus ``{endpoint}/health``."""
    path = endpoint or controller.settings.ENDPOINT
    router = APIRouter(tags=["inngest"])

    @router.get(f"{path.rstrip('/')}/health")
    async def inngest_health() -> Dict[str, Any]:
        """Bridge readiness: registered functions, signing and execution stats."""
        return controller.get_health_status()

    @router.api_route(path, methods=WEBHOOK_METHODS)
    async def inngest_webhook(request: Request):
        """Introspection (GET), registration (PUT) and execution (POST)."""
        return await controller.handle(request)

    return router


def setup_aiohttp(app: web.Application, controller: WebhookController, endpoint: Optional[str] = None) -> None:
    """Add the webhook and health routes to an aiohttp application."""
    path = endpoint or controller.settings.ENDPOINT

    async def inngest_webhook(request: web.Request) -> web.StreamResponse:
        return await controller.handle(request)

    async def inngest_health(request: web.Request) -> web.StreamResponse:
        return web.json_response(controller.get_health_status())

    app.router.add_get(f"{path.rstrip('/')}/health", inngest_health)
    app.router.add_route("*", path, inngest_webhook)
