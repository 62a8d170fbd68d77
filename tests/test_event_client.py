"""Tests for the event client and transport retries"""
import json

import httpx
import pytest
from pydantic import BaseModel

from inngest_bridge import InngestBridge
from inngest_bridge.core.exceptions import ConfigError, EventSendError
from inngest_bridge.schemas.events import InngestEvent
from inngest_bridge.services.event_client import InngestEventClient
from inngest_bridge.services.retry_handler import RetryConfig, RetryHandler

from conftest import make_settings


async def no_sleep(delay):
    return None


def make_client(handler, **overrides):
    settings = make_settings(**overrides)
    return InngestEventClient(
        settings,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_handler=RetryHandler(RetryConfig.from_settings(settings), sleep=no_sleep),
    )


class TestSend:
    """Test sending events"""

    @pytest.mark.asyncio
    async def test_send_single_event(self, settings, event_transport):
        client = InngestEventClient(settings, http_client=httpx.AsyncClient(transport=event_transport))

        ids = await client.send({"name": "user.created", "data": {"userId": "u1"}})

        assert ids == ["evt-0"]
        request = event_transport.requests[0]
        assert str(request.url) == "https://events.test/e/test-event-key"
        sent = json.loads(request.content)
        assert sent[0]["name"] == "user.created"
        assert sent[0]["data"] == {"userId": "u1"}
        assert isinstance(sent[0]["ts"], int)

    @pytest.mark.asyncio
    async def test_batches_by_max_size(self):
        batches = []

        def handler(request):
            events = json.loads(request.content)
            batches.append(len(events))
            return httpx.Response(200, json={"ids": [e["name"] for e in events]})

        client = make_client(handler, MAX_BATCH_SIZE=2)
        events = [InngestEvent(name=f"item.e{i}") for i in range(5)]

        ids = await client.send_batch(events)

        assert batches == [2, 2, 1]
        assert ids == [f"item.e{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_empty_batch(self, settings, event_transport):
        client = InngestEventClient(settings, http_client=httpx.AsyncClient(transport=event_transport))

        assert await client.send_batch([]) == []
        assert event_transport.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("event", [{"name": ""}, {"data": {}}, {"name": "a.b", "data": "nope"}])
    async def test_invalid_events(self, settings, event_transport, event):
        client = InngestEventClient(settings, http_client=httpx.AsyncClient(transport=event_transport))

        with pytest.raises(ValueError):
            await client.send(event)

    @pytest.mark.asyncio
    async def test_missing_event_key(self, event_transport):
        client = InngestEventClient(
            make_settings(EVENT_KEY=None), http_client=httpx.AsyncClient(transport=event_transport)
        )

        with pytest.raises(EventSendError):
            await client.send({"name": "user.created"})

    @pytest.mark.asyncio
    async def test_mocked_in_development(self, dev_settings, event_transport):
        client = InngestEventClient(dev_settings, http_client=httpx.AsyncClient(transport=event_transport))

        ids = await client.send([{"name": "a.b"}, {"name": "c.d"}])

        assert len(ids) == 2
        assert all(i.startswith("mock-") for i in ids)
        assert event_transport.requests == []


class UserCreatedData(BaseModel):
    userId: str
    plan: str = "free"


class TestEventSchemas:
    """Test per-event data schemas"""

    @pytest.mark.asyncio
    async def test_data_validated_and_defaults_applied(self, settings, event_transport):
        client = InngestEventClient(settings, http_client=httpx.AsyncClient(transport=event_transport))
        client.register_event_schema("user.created", UserCreatedData)

        await client.send({"name": "user.created", "data": {"userId": "u1"}})

        sent = json.loads(event_transport.requests[0].content)
        assert sent[0]["data"] == {"userId": "u1", "plan": "free"}

    @pytest.mark.asyncio
    async def test_invalid_data_not_sent(self, settings, event_transport):
        client = InngestEventClient(settings, http_client=httpx.AsyncClient(transport=event_transport))
        client.register_event_schema("user.created", UserCreatedData)

        with pytest.raises(ValueError) as exc_info:
            await client.send([{"name": "user.updated"}, {"name": "user.created", "data": {"plan": "pro"}}])

        assert "Event 1" in str(exc_info.value)
        assert "user.created" in str(exc_info.value)
        assert event_transport.requests == []

    def test_events_without_schema_pass_through(self, settings):
        client = InngestEventClient(settings)
        client.register_event_schema("user.created", UserCreatedData)

        events = client.validate_events([{"name": "order.placed", "data": {"anything": 1}}])

        assert events[0].data == {"anything": 1}

    def test_schema_must_be_model_class(self, settings):
        client = InngestEventClient(settings)

        with pytest.raises(ValueError):
            client.register_event_schema("user.created", dict)

    def test_bridge_decorator_registers_schema(self, settings):
        bridge = InngestBridge(settings)

        @bridge.event_schema("user.created")
        class SignupData(BaseModel):
            userId: str

        assert bridge.event_client.get_event_schema("user.created") is SignupData


class TestRetries:
    """Test transport retry behaviour"""

    @pytest.mark.asyncio
    async def test_retries_transport_failures(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"ids": ["evt-1"]})

        client = make_client(handler, RETRY_MAX_ATTEMPTS=3)

        assert await client.send({"name": "a.b"}) == ["evt-1"]
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        statuses = iter([503, 200])

        def handler(request):
            status = next(statuses)
            return httpx.Response(status, json={"ids": ["evt-1"]} if status == 200 else {})

        client = make_client(handler)

        assert await client.send({"name": "a.b"}) == ["evt-1"]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(502)

        client = make_client(handler, RETRY_MAX_ATTEMPTS=2)

        with pytest.raises(EventSendError) as exc_info:
            await client.send({"name": "a.b"})

        assert len(calls) == 3
        assert exc_info.value.event_names == ["a.b"]
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, json={"error": "bad event"})

        client = make_client(handler)

        with pytest.raises(EventSendError):
            await client.send({"name": "a.b"})

        assert len(calls) == 1

    def test_backoff_grows_and_caps(self):
        handler = RetryHandler(RetryConfig(initial_delay=1.0, max_delay=5.0, jitter=False))

        assert [handler.calculate_delay(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


class TestRegisterApp:
    """Test pushing the registration payload"""

    @pytest.mark.asyncio
    async def test_requires_register_url(self, settings, event_transport):
        client = InngestEventClient(settings, http_client=httpx.AsyncClient(transport=event_transport))

        with pytest.raises(ConfigError):
            await client.register_app({"functions": []})
