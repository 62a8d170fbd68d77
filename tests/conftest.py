"""Pytest configuration and shared fixtures."""

import json
import time
from typing import Any, Dict, Optional

import httpx
import pytest

from inngest_bridge import InngestBridge, inngest_function
from inngest_bridge.core.config import Settings
from inngest_bridge.services.signature_verification import SignatureVerificationService

SIGNING_KEY = "signkey-test-0123456789abcdef0123456789abcdef"
FALLBACK_KEY = "signkey-test-fedcba9876543210fedcba9876543210"


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values: Dict[str, Any] = {
        "APP_ID": "test-app",
        "ENVIRONMENT": "test",
        "SIGNING_KEY": SIGNING_KEY,
        "EVENT_KEY": "test-event-key",
        "EVENT_API_URL": "https://events.test",
        "RETRY_INITIAL_DELAY": 0.1,
        "RETRY_MAX_DELAY": 0.1,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def sign(body: Any, key: str = SIGNING_KEY, timestamp: Optional[int] = None) -> Dict[str, str]:
    """Headers carrying a valid signature for ``body``."""
    raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    return {
        "X-Inngest-Signature": SignatureVerificationService.create_signature(raw, key, timestamp),
        "Content-Type": "application/json",
    }


def execution_body(function_id: str, data: Optional[Dict[str, Any]] = None, **extra: Any) -> Dict[str, Any]:
    body = {
        "function_id": function_id,
        "event": {"name": "user.created", "data": data if data is not None else {"userId": "u1"}},
        "run_id": "run-1",
        "attempt": 1,
    }
    body.update(extra)
    return body


class UserHandlers:
    """Decorated handlers used across the controller tests."""

    @inngest_function(id="send-welcome-email", triggers=[{"event": "user.created"}])
    async def send_welcome_email(self, event, context):
        return {"success": True, "userId": event.data["userId"], "attempt": context.attempt}

    @inngest_function(id="failing-function", triggers=[{"event": "user.deleted"}])
    async def failing(self, event, context):
        raise ValueError("mailbox unavailable")

    @inngest_function(id="nightly-report", triggers=[{"cron": "0 2 * * *"}], timeout_ms=1000)
    def nightly_report(self, event, context):
        return {"rows": 3}


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def dev_settings() -> Settings:
    return make_settings(
        IS_DEV=True,
        DISABLE_SIGNATURE_VERIFICATION=True,
        MOCK_EXTERNAL_CALLS=True,
    )


@pytest.fixture
def event_transport():
    """MockTransport recording every request sent to the event API."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        events = json.loads(request.content)
        return httpx.Response(200, json={"ids": [f"evt-{i}" for i in range(len(events))], "status": 200})

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport


@pytest.fixture
def bridge(settings, event_transport) -> InngestBridge:
    bridge = InngestBridge(settings, http_client=httpx.AsyncClient(transport=event_transport))
    bridge.discover(UserHandlers())
    return bridge


@pytest.fixture
def now() -> int:
    return int(time.time())
