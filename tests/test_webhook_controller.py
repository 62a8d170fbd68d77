"""Tests for the webhook endpoint served through FastAPI"""
import asyncio
import json

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from inngest_bridge import InngestBridge, create_app
from inngest_bridge.core.constants import SDK_VERSION

from conftest import SIGNING_KEY, UserHandlers, execution_body, make_settings, sign

ENDPOINT = "/api/inngest"


def post(client, body, **kwargs):
    raw = json.dumps(body).encode()
    return client.post(ENDPOINT, content=raw, headers=sign(raw), **kwargs)


@pytest.fixture
def client(bridge):
    with TestClient(create_app(bridge)) as client:
        yield client


class TestIntrospection:
    """Test GET"""

    def test_lists_functions(self, client):
        response = client.get(ENDPOINT)

        assert response.status_code == 200
        body = response.json()
        assert body["function_count"] == 3
        assert {f["id"] for f in body["functions"]} == {"send-welcome-email", "failing-function", "nightly-report"}
        assert body["sdk"] == {
            "name": "inngest-bridge",
            "version": SDK_VERSION,
            "language": "python",
            "framework": "starlette",
        }
        assert body["app_id"] == "test-app"
        assert body["mode"] == "cloud"

    def test_never_leaks_secrets(self, client):
        response = client.get(ENDPOINT)

        assert SIGNING_KEY not in response.text
        assert "test-event-key" not in response.text
        assert "handler" not in response.text

    def test_sdk_header(self, client):
        response = client.get(ENDPOINT)

        assert response.headers["x-inngest-sdk"] == f"inngest-bridge:{SDK_VERSION}"

    def test_health(self, client):
        response = client.get(f"{ENDPOINT}/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["function_count"] == 3
        assert body["signature_verification"]["has_signing_key"] is True


class TestExecution:
    """Test POST"""

    def test_runs_function(self, client):
        response = post(client, execution_body("send-welcome-email"))

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "result": {"success": True, "userId": "u1", "attempt": 1},
        }

    def test_attempt_is_passed_through(self, client):
        response = post(client, execution_body("send-welcome-email", attempt=3))

        assert response.json()["result"]["attempt"] == 3

    def test_sync_handler(self, client):
        response = post(client, execution_body("nightly-report"))

        assert response.status_code == 200
        assert response.json()["result"] == {"rows": 3}

    def test_function_id_from_query(self, client):
        body = execution_body("send-welcome-email")
        del body["function_id"]
        raw = json.dumps(body).encode()

        response = client.post(f"{ENDPOINT}?fnId=send-welcome-email", content=raw, headers=sign(raw))

        assert response.status_code == 200

    def test_unknown_function(self, client):
        response = post(client, execution_body("missing"))

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "FUNCTION_NOT_FOUND"
        assert "not found" in error["message"]
        assert error["function_id"] == "missing"

    def test_handler_error(self, client):
        response = post(client, execution_body("failing-function"))

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "FUNCTION_RUNTIME_ERROR"
        assert error["severity"] == "error"
        assert error["function_id"] == "failing-function"
        assert error["run_id"] == "run-1"
        assert error["message"] == "mailbox unavailable"
        assert "timestamp" in error
        assert "Traceback" not in response.text

    def test_timeout(self, bridge):
        async def slow(event, context):
            await asyncio.sleep(5)

        bridge.register({"id": "slow-function", "triggers": [{"event": "a.b"}], "timeout_ms": 1000}, slow)

        with TestClient(create_app(bridge)) as client:
            response = post(client, execution_body("slow-function"))

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "FUNCTION_TIMEOUT"
        assert error["severity"] == "warning"
        assert error["function_id"] == "slow-function"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), {"ratio": float("-inf")}])
    def test_non_json_result_returns_error_envelope(self, bridge, value):
        async def unrepresentable(event, context):
            return value

        bridge.register({"id": "unrepresentable", "triggers": [{"event": "a.b"}]}, unrepresentable)

        with TestClient(create_app(bridge)) as client:
            response = post(client, execution_body("unrepresentable"))

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "FUNCTION_RUNTIME_ERROR"
        assert error["function_id"] == "unrepresentable"
        assert "not JSON serializable" in error["message"]

    def test_pending_step(self, bridge):
        async def sleepy(event, context):
            await context.step.run("prepare", lambda: {"ready": True})
            await context.step.sleep("cool-down", "10m")
            return "done"

        bridge.register({"id": "sleepy", "triggers": [{"event": "a.b"}]}, sleepy)

        with TestClient(create_app(bridge)) as client:
            pending = post(client, execution_body("sleepy"))
            resumed = post(client, execution_body(
                "sleepy", attempt=1, steps={"prepare": {"data": {"ready": True}}, "cool-down": None},
            ))

        assert pending.status_code == 206
        body = pending.json()
        assert body["status"] == "pending"
        assert body["function_id"] == "sleepy"
        assert body["run_id"] == "run-1"
        assert [(s["id"], s["status"]) for s in body["steps"]] == [
            ("prepare", "completed"),
            ("cool-down", "pending"),
        ]
        assert body["steps"][1]["opts"]["duration_ms"] == 600000

        assert resumed.status_code == 200
        assert resumed.json() == {"status": "ok", "result": "done"}

    def test_unsigned_request_rejected(self, client):
        response = client.post(ENDPOINT, json=execution_body("send-welcome-email"))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SIGNATURE_MISSING_HEADER"

    def test_tampered_body_rejected(self, client):
        raw = json.dumps(execution_body("send-welcome-email")).encode()
        headers = sign(raw)

        response = client.post(ENDPOINT, content=raw.replace(b"u1", b"u2"), headers=headers)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SIGNATURE_DIGEST_MISMATCH"

    @pytest.mark.parametrize("raw", [b"not json", b"[1, 2]", b'{"function_id": "send-welcome-email"}'])
    def test_invalid_body(self, client, raw):
        response = client.post(ENDPOINT, content=raw, headers=sign(raw))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_development_mode_skips_signature(self, dev_settings):
        bridge = InngestBridge(dev_settings)
        bridge.discover(UserHandlers())

        with TestClient(create_app(bridge)) as client:
            response = client.post(ENDPOINT, json=execution_body("send-welcome-email"))
            introspection = client.get(ENDPOINT)

        assert response.status_code == 200
        assert introspection.json()["mode"] == "dev"


class TestRegistration:
    """Test PUT"""

    def test_signed_put_returns_payload(self, client):
        response = client.put(ENDPOINT, content=b"", headers=sign(b""))

        assert response.status_code == 200
        body = response.json()
        assert body["function_count"] == 3
        assert body["url"] == f"http://testserver{ENDPOINT}"
        assert "registered" not in body

    def test_unsigned_put_rejected(self, client):
        response = client.put(ENDPOINT)

        assert response.status_code == 401

    def test_pushes_to_register_url(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(200, json={"ok": True})

        settings = make_settings(REGISTER_URL="https://api.inngest.test/fn/register", APP_URL="https://app.test/api/inngest")
        bridge = InngestBridge(settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        bridge.discover(UserHandlers())

        with TestClient(create_app(bridge)) as client:
            response = client.put(ENDPOINT, content=b"", headers=sign(b""))

        assert response.status_code == 200
        assert response.json()["registered"] is True
        assert len(received) == 1
        assert str(received[0].url) == "https://api.inngest.test/fn/register"
        assert received[0].headers["authorization"] == f"Bearer {SIGNING_KEY}"
        pushed = json.loads(received[0].content)
        assert pushed["url"] == "https://app.test/api/inngest"
        assert pushed["functions"][0]["steps"]["step"]["runtime"]["url"].startswith("https://app.test/api/inngest?fnId=")


class TestMethods:
    """Test unsupported methods"""

    def test_delete_not_allowed(self, client):
        response = client.delete(ENDPOINT)

        assert response.status_code == 405
        assert response.headers["allow"] == "GET, PUT, POST"
        assert response.json()["error"]["code"] == "METHOD_NOT_ALLOWED"


class TestControllerReports:
    """Test readiness reports"""

    def test_validate_webhook_config(self, bridge):
        report = bridge.controller.validate_webhook_config()

        assert report == {"valid": True, "errors": [], "warnings": []}

    def test_validate_reports_missing_key(self):
        bridge = InngestBridge(make_settings(SIGNING_KEY=None))

        report = bridge.controller.validate_webhook_config()

        assert report["valid"] is False
        assert "No functions registered" in report["warnings"]

    def test_create_app_mounts_router(self, bridge):
        app = create_app(bridge)

        assert isinstance(app, FastAPI)
        assert app.state.inngest is bridge
        with TestClient(app) as client:
            assert client.get(ENDPOINT).status_code == 200
            assert client.get(f"{ENDPOINT}/health").status_code == 200
