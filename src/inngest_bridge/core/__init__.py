"""Core functionality for the bridge."""

from .config import Settings, get_settings, get_cached_settings
from .development import DevelopmentMode
from .exceptions import (
    InngestBridgeError,
    ConfigError,
    RegistrationError,
    SignatureVerificationError,
    SignatureFailureReason,
    InvalidRequestError,
    MethodNotAllowedError,
    FunctionNotFoundError,
    FunctionRuntimeError,
    FunctionTimeoutError,
    StepError,
    StepIdConflictError,
    StepAbandonedError,
    EventSendError,
    Severity,
)

__all__ = [
    "Settings",
    "get_settings",
    "get_cached_settings",
    "DevelopmentMode",
    "InngestBridgeError",
    "ConfigError",
    "RegistrationError",
    "SignatureVerificationError",
    "SignatureFailureReason",
    "InvalidRequestError",
    "MethodNotAllowedError",
    "FunctionNotFoundError",
    "FunctionRuntimeError",
    "FunctionTimeoutError",
    "StepError",
    "StepIdConflictError",
    "StepAbandonedError",
    "EventSendError",
    "Severity",
]
