"""Function definition schemas: triggers, configuration and registry metadata."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..core.constants import (
    CONCURRENCY_MAX,
    CONCURRENCY_MIN,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT_MS,
    ERROR_MESSAGES,
    EVENT_NAME_PATTERN,
    FUNCTION_ID_PATTERN,
    PRIORITY_MAX,
    PRIORITY_MIN,
    RETRIES_MAX,
    RETRIES_MIN,
    TIMEOUT_MAX_MS,
    TIMEOUT_MIN_MS,
)


class EventTrigger(BaseModel):
    """Invoke the function when a matching event arrives."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    event: str
    if_: Optional[str] = Field(default=None, alias="if", description="Optional condition expression")

    @field_validator("event")
    @classmethod
    def validate_event(cls, v: str) -> str:
        if not EVENT_NAME_PATTERN.fullmatch(v):
            raise ValueError(
                f'Event name "{v}" must be lowercase dot-separated tokens (e.g. "user.created")'
            )
        return v

    @field_validator("if_")
    @classmethod
    def validate_condition(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Event trigger condition must be a non-empty string")
        return v


class CronTrigger(BaseModel):
    """Invoke the function on a cron schedule."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    cron: str
    timezone: Optional[str] = None

    @field_validator("cron")
    @classmethod
    def validate_cron(cls, v: str) -> str:
        parts = v.split()
        if len(parts) < 5 or len(parts) > 6:
            raise ValueError(f'Invalid cron expression "{v}". Must have 5 or 6 fields.')
        return " ".join(parts)


def _trigger_kind(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        if "event" in value:
            return "event"
        if "cron" in value:
            return "cron"
        return None
    if isinstance(value, EventTrigger):
        return "event"
    if isinstance(value, CronTrigger):
        return "cron"
    return None


Trigger = Annotated[
    Union[Annotated[EventTrigger, Tag("event")], Annotated[CronTrigger, Tag("cron")]],
    Discriminator(
        _trigger_kind,
        custom_error_type="invalid_trigger",
        custom_error_message="Trigger must be either an event trigger or a cron trigger",
    ),
]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
        frozen=True,
    )


class ConcurrencyConfig(_CamelModel):
    """Maximum concurrent runs, optionally per key expression."""
    limit: int = Field(..., ge=CONCURRENCY_MIN, le=CONCURRENCY_MAX)
    key: Optional[str] = None


class RateLimitConfig(_CamelModel):
    """Maximum runs per period (e.g. "1m", "1h")."""
    limit: int = Field(..., gt=0)
    period: str = Field(..., min_length=1)
    key: Optional[str] = None


class BatchConfig(_CamelModel):
    """Event batching: up to ``max_size`` events or until ``timeout`` elapses."""
    max_size: int = Field(..., gt=0)
    timeout: str = Field(..., min_length=1)


class FunctionConfig(_CamelModel):
    """Declarative description of a function, validated before registration."""

    id: str
    name: Optional[str] = None
    triggers: List[Trigger] = Field(..., min_length=1)
    retries: int = Field(default=DEFAULT_RETRIES, ge=RETRIES_MIN, le=RETRIES_MAX)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, ge=TIMEOUT_MIN_MS, le=TIMEOUT_MAX_MS)
    concurrency: Optional[ConcurrencyConfig] = None
    rate_limit: Optional[RateLimitConfig] = None
    batch: Optional[BatchConfig] = None
    priority: Optional[int] = Field(default=None, ge=PRIORITY_MIN, le=PRIORITY_MAX)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not FUNCTION_ID_PATTERN.fullmatch(v):
            raise ValueError(ERROR_MESSAGES["INVALID_FUNCTION_ID"])
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Function name must be a non-empty string if provided")
        return v

    @field_validator("concurrency", mode="before")
    @classmethod
    def normalize_concurrency(cls, v: Any) -> Any:
        # A bare number is shorthand for {"limit": n}
        if isinstance(v, int) and not isinstance(v, bool):
            return {"limit": v}
        return v

    @model_validator(mode="before")
    @classmethod
    def default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("name") is None and "id" in data:
            data = {**data, "name": data["id"]}
        return data

    def wire_config(self) -> Dict[str, Any]:
        """Config block of the registration payload (camelCase, no empty keys)."""
        return self.model_dump(
            by_alias=True,
            exclude_none=True,
            include={"retries", "timeout_ms", "concurrency", "rate_limit", "batch", "priority"},
        )

    def wire_triggers(self) -> List[Dict[str, Any]]:
        return [t.model_dump(by_alias=True, exclude_none=True) for t in self.triggers]


FunctionHandler = Callable[..., Union[Any, Awaitable[Any]]]


@dataclass
class FunctionMetadata:
    """A registered function: validated config plus the bound handler."""
    config: FunctionConfig
    handler: FunctionHandler
    target: Any = None
    method_name: Optional[str] = None
    registered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name or self.config.id

    @property
    def timeout_ms(self) -> int:
        return self.config.timeout_ms

    @property
    def has_explicit_timeout(self) -> bool:
        return "timeout_ms" in self.config.model_fields_set

    @property
    def owner(self) -> str:
        """Human-readable handler location for error messages."""
        if self.target is not None:
            return f"{type(self.target).__name__}.{self.method_name}"
        return getattr(self.handler, "__qualname__", repr(self.handler))

    def to_definition(self) -> Dict[str, Any]:
        """Safe wire definition: no handler references, no secrets."""
        return {
            "id": self.config.id,
            "name": self.name,
            "triggers": self.config.wire_triggers(),
            "config": self.config.wire_config(),
        }
