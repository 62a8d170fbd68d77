"""Pydantic schemas for functions, events and the webhook wire format."""

from .functions import (
    EventTrigger,
    CronTrigger,
    Trigger,
    ConcurrencyConfig,
    RateLimitConfig,
    BatchConfig,
    FunctionConfig,
    FunctionMetadata,
    FunctionHandler,
)
from .events import InngestEvent
from .webhook import (
    WebhookExecutionRequest,
    SdkInfo,
    RegistrationPayload,
    ExecutionSuccessResponse,
    StepOpResponse,
    PendingStepResponse,
)

__all__ = [
    "EventTrigger",
    "CronTrigger",
    "Trigger",
    "ConcurrencyConfig",
    "RateLimitConfig",
    "BatchConfig",
    "FunctionConfig",
    "FunctionMetadata",
    "FunctionHandler",
    "InngestEvent",
    "WebhookExecutionRequest",
    "SdkInfo",
    "RegistrationPayload",
    "ExecutionSuccessResponse",
    "StepOpResponse",
    "PendingStepResponse",
]
