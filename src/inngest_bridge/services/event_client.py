"""Client for the orchestrator's event ingestion and registration APIs."""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence, Type, Union

import httpx
from pydantic import BaseModel, ValidationError

from ..core.config import Settings
from ..core.constants import ERROR_MESSAGES, SDK_HEADER, SDK_NAME, SDK_VERSION
from ..core.development import DevelopmentMode
from ..core.exceptions import ConfigError, EventSendError, RegistrationError
from ..schemas.events import InngestEvent
from .retry_handler import RetryConfig, RetryHandler

logger = logging.getLogger(__name__)

EventInput = Union[InngestEvent, Dict[str, Any]]


class InngestEventClient:
    """Sends events over HTTPS, batching and retrying the transport."""

    def __init__(
        self,
        settings: Settings,
        development_mode: Optional[DevelopmentMode] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_handler: Optional[RetryHandler] = None,
    ):
        self.settings = settings
        self.development_mode = development_mode or DevelopmentMode(settings)
        self.retry_handler = retry_handler or RetryHandler(RetryConfig.from_settings(settings))
        self._http_client = http_client
        self._owns_client = http_client is None
        self._event_schemas: Dict[str, Type[BaseModel]] = {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.settings.HTTP_TIMEOUT_SECONDS,
                headers={SDK_HEADER: f"{SDK_NAME}:{SDK_VERSION}"},
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def register_event_schema(self, event_name: str, schema: Type[BaseModel]) -> None:
        """Validate the data of every outgoing ``event_name`` event against ``schema``.

        The validated model is dumped back into ``data``, so defaults and
        coercions declared on the schema are what gets sent.
        """
        if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
            raise ValueError(f"Schema for event {event_name} must be a pydantic model class")
        self._event_schemas[event_name] = schema
        logger.debug(f"Registered data schema {schema.__name__} for event {event_name}")

    def get_event_schema(self, event_name: str) -> Optional[Type[BaseModel]]:
        return self._event_schemas.get(event_name)

    async def send(self, events: Union[EventInput, Sequence[EventInput]]) -> List[str]:
        """Send one event or a list of events; returns the assigned ids."""
        if isinstance(events, (InngestEvent, dict)):
            events = [events]
        return await self.send_batch(events)

    async def send_batch(self, events: Sequence[EventInput], batch_size: Optional[int] = None) -> List[str]:
        """Send ``events`` in chunks of at most ``batch_size`` (default ``MAX_BATCH_SIZE``)."""
        normalized = self.validate_events(events)
        if not normalized:
            return []

        batch_size = batch_size or self.settings.MAX_BATCH_SIZE
        ids: List[str] = []
        for start in range(0, len(normalized), batch_size):
            ids.extend(await self._send_chunk(normalized[start:start + batch_size]))
        return ids

    def validate_events(self, events: Sequence[EventInput]) -> List[InngestEvent]:
        """Validate events before sending; fills a missing ``ts`` with now.

        Raises:
            ValueError: an event has no name, its data is not a mapping, or
                its data does not match the schema registered for its name.
        """
        normalized = []
        now_ms = int(time.time() * 1000)
        for index, event in enumerate(events):
            if not isinstance(event, InngestEvent):
                try:
                    event = InngestEvent.model_validate(event)
                except ValidationError as e:
                    fields = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
                    key = "INVALID_EVENT_DATA" if fields == {"data"} else "INVALID_EVENT_NAME"
                    raise ValueError(f"Event {index}: {ERROR_MESSAGES[key]}") from e
            schema = self._event_schemas.get(event.name)
            if schema is not None:
                try:
                    data = schema.model_validate(event.data).model_dump(mode="json")
                except ValidationError as e:
                    raise ValueError(f"Event {index}: invalid data for event \"{event.name}\": {e}") from e
                event = event.model_copy(update={"data": data})
            if event.ts is None:
                event = event.model_copy(update={"ts": now_ms})
            normalized.append(event)
        return normalized

    async def _send_chunk(self, chunk: List[InngestEvent]) -> List[str]:
        names = [event.name for event in chunk]

        if self.development_mode.should_mock_external_calls():
            ids = [f"mock-{uuid.uuid4()}" for _ in chunk]
            self.development_mode.log("Mocked event send", {"events": names})
            logger.info(f"[DEV] Mocked sending {len(chunk)} event(s): {', '.join(names)}")
            return ids

        if not self.settings.EVENT_KEY:
            raise EventSendError("INNGEST_EVENT_KEY is not configured", names)

        url = f"{self.settings.EVENT_API_URL}/e/{self.settings.EVENT_KEY}"
        payload = [event.to_wire() for event in chunk]

        async def post_events() -> Any:
            response = await self.http_client.post(url, json=payload)
            response.raise_for_status()
            return response.json()

        try:
            body = await self.retry_handler.execute_with_retry(post_events)
        except (httpx.HTTPError, ValueError) as e:
            raise EventSendError(f"{ERROR_MESSAGES['EVENT_SEND_FAILED']}: {e}", names, e) from e

        ids = body.get("ids", []) if isinstance(body, dict) else []
        logger.info(f"Sent {len(chunk)} event(s) to Inngest: {', '.join(names)}")
        return [str(i) for i in ids]

    async def register_app(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Push the registration payload to ``INNGEST_REGISTER_URL``."""
        if not self.settings.REGISTER_URL:
            raise ConfigError("INNGEST_REGISTER_URL is not configured", field="REGISTER_URL")

        if self.development_mode.should_mock_external_calls():
            logger.info(f"[DEV] Mocked registration of {payload.get('function_count', 0)} function(s)")
            return {"ok": True, "mocked": True}

        headers = {}
        if self.settings.SIGNING_KEY:
            headers["Authorization"] = f"Bearer {self.settings.SIGNING_KEY}"

        async def post_registration() -> Any:
            response = await self.http_client.post(self.settings.REGISTER_URL, json=payload, headers=headers)
            response.raise_for_status()
            return response.json() if response.content else {}

        try:
            body = await self.retry_handler.execute_with_retry(post_registration)
        except (httpx.HTTPError, ValueError) as e:
            raise RegistrationError(f"Failed to register app with Inngest: {e}") from e

        logger.info(f"Registered {payload.get('function_count', 0)} function(s) with {self.settings.REGISTER_URL}")
        return body if isinstance(body, dict) else {}
