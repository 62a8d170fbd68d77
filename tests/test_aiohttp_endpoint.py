"""Tests for the webhook endpoint served through aiohttp"""
import json

import pytest
from aiohttp import web
from aiohttp import test_utils

from conftest import execution_body, sign

ENDPOINT = "/api/inngest"


async def start_client(bridge) -> test_utils.TestClient:
    app = web.Application()
    bridge.attach_aiohttp(app)
    client = test_utils.TestClient(test_utils.TestServer(app))
    await client.start_server()
    return client


class TestAiohttpEndpoint:
    """Test the endpoint on an aiohttp application"""

    @pytest.mark.asyncio
    async def test_introspection(self, bridge):
        client = await start_client(bridge)
        try:
            response = await client.get(ENDPOINT)
            body = await response.json()
        finally:
            await client.close()

        assert response.status == 200
        assert body["function_count"] == 3
        assert body["sdk"]["framework"] == "aiohttp"

    @pytest.mark.asyncio
    async def test_signed_execution(self, bridge):
        raw = json.dumps(execution_body("send-welcome-email")).encode()
        client = await start_client(bridge)
        try:
            response = await client.post(ENDPOINT, data=raw, headers=sign(raw))
            body = await response.json()
        finally:
            await client.close()

        assert response.status == 200
        assert body == {"status": "ok", "result": {"success": True, "userId": "u1", "attempt": 1}}
        assert response.headers["X-Inngest-Sdk"].startswith("inngest-bridge:")

    @pytest.mark.asyncio
    async def test_unknown_function(self, bridge):
        raw = json.dumps(execution_body("missing")).encode()
        client = await start_client(bridge)
        try:
            response = await client.post(ENDPOINT, data=raw, headers=sign(raw))
            body = await response.json()
        finally:
            await client.close()

        assert response.status == 404
        assert body["error"]["code"] == "FUNCTION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_handler_error(self, bridge):
        raw = json.dumps(execution_body("failing-function")).encode()
        client = await start_client(bridge)
        try:
            response = await client.post(ENDPOINT, data=raw, headers=sign(raw))
            body = await response.json()
        finally:
            await client.close()

        assert response.status == 500
        assert body["error"]["code"] == "FUNCTION_RUNTIME_ERROR"
        assert body["error"]["message"] == "mailbox unavailable"

    @pytest.mark.asyncio
    async def test_bad_signature(self, bridge):
        raw = json.dumps(execution_body("send-welcome-email")).encode()
        client = await start_client(bridge)
        try:
            response = await client.post(ENDPOINT, data=raw + b" ", headers=sign(raw))
        finally:
            await client.close()

        assert response.status == 401

    @pytest.mark.asyncio
    async def test_method_not_allowed(self, bridge):
        client = await start_client(bridge)
        try:
            response = await client.delete(ENDPOINT)
        finally:
            await client.close()

        assert response.status == 405
        assert response.headers["Allow"] == "GET, PUT, POST"

    @pytest.mark.asyncio
    async def test_health(self, bridge):
        client = await start_client(bridge)
        try:
            response = await client.get(f"{ENDPOINT}/health")
            body = await response.json()
        finally:
            await client.close()

        assert response.status == 200
        assert body["app_id"] == "test-app"
