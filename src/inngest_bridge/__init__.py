"""Webhook bridge between application handlers and the Inngest orchestrator."""

from .core.app import InngestBridge, create_app
from .core.config import Settings, get_settings
from .core.constants import SDK_VERSION as __version__
from .core.exceptions import (
    InngestBridgeError,
    ConfigError,
    RegistrationError,
    SignatureVerificationError,
    FunctionNotFoundError,
    FunctionRuntimeError,
    FunctionTimeoutError,
    StepError,
    EventSendError,
)
from .schemas.events import InngestEvent
from .schemas.functions import FunctionConfig
from .services.execution_context import ExecutionContext
from .services.function_registry import FunctionRegistry, inngest_function

__all__ = [
    "__version__",
    "InngestBridge",
    "create_app",
    "Settings",
    "get_settings",
    "InngestBridgeError",
    "ConfigError",
    "RegistrationError",
    "SignatureVerificationError",
    "FunctionNotFoundError",
    "FunctionRuntimeError",
    "FunctionTimeoutError",
    "StepError",
    "EventSendError",
    "InngestEvent",
    "FunctionConfig",
    "ExecutionContext",
    "FunctionRegistry",
    "inngest_function",
]
