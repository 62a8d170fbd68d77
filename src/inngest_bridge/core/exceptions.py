"""Custom exceptions for the bridge.

Every error carries an HTTP status, a machine-readable code and a severity so
the webhook controller can normalize it into the wire error envelope.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class Severity(str, Enum):
    """Triage severity reported to the orchestrator."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class InngestBridgeError(Exception):
    """Base exception for all bridge errors."""

    code = "BRIDGE_ERROR"
    severity = Severity.ERROR

    def __init__(
        self,
        message: str = "An error occurred",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self, function_id: Optional[str] = None) -> Dict[str, Any]:
        """Build the wire error envelope."""
        error = {
            "message": self.message,
            "code": self.code,
            "severity": self.severity.value,
            "function_id": function_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        return {"error": error}


class ConfigError(InngestBridgeError):
    """Raised when bridge configuration is invalid."""

    code = "CONFIG_ERROR"
    severity = Severity.CRITICAL

    def __init__(self, message: str = "Invalid configuration", field: Optional[str] = None):
        super().__init__(message, 500, {"field": field} if field else None)
        self.field = field


class RegistrationError(InngestBridgeError):
    """Raised when a function cannot be registered."""

    code = "REGISTRATION_ERROR"

    def __init__(
        self,
        message: str = "Function registration failed",
        function_id: Optional[str] = None,
        errors: Optional[List[str]] = None
    ):
        details: Dict[str, Any] = {"function_id": function_id}
        if errors:
            details["errors"] = errors
        super().__init__(message, 500, details)
        self.function_id = function_id
        self.errors = errors or []


class SignatureFailureReason(str, Enum):
    """Why a webhook signature was rejected."""
    MISSING_SIGNING_KEY = "missing_signing_key"
    MISSING_HEADER = "missing_header"
    MALFORMED_HEADER = "malformed_header"
    DIGEST_MISMATCH = "digest_mismatch"
    EXPIRED_TIMESTAMP = "expired_timestamp"


class SignatureVerificationError(InngestBridgeError):
    """Raised when webhook authentication fails."""

    severity = Severity.WARNING

    def __init__(self, message: str, reason: SignatureFailureReason):
        status_code = 500 if reason == SignatureFailureReason.MISSING_SIGNING_KEY else 401
        super().__init__(message, status_code, {"reason": reason.value})
        self.reason = reason

    @property
    def code(self) -> str:  # type: ignore[override]
        return f"SIGNATURE_{self.reason.name}"


class InvalidRequestError(InngestBridgeError):
    """Raised when a webhook body cannot be parsed."""

    code = "INVALID_REQUEST"
    severity = Severity.WARNING

    def __init__(self, message: str = "Invalid request", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, details)


class MethodNotAllowedError(InngestBridgeError):
    """Raised for HTTP methods the webhook endpoint does not serve."""

    code = "METHOD_NOT_ALLOWED"
    severity = Severity.WARNING

    def __init__(self, method: str):
        super().__init__(f"Method not allowed: {method}", 405, {"method": method})


class FunctionNotFoundError(InngestBridgeError):
    """Raised when a function id is not registered."""

    code = "FUNCTION_NOT_FOUND"
    severity = Severity.WARNING

    def __init__(self, function_id: str):
        super().__init__(f"Function not found: {function_id}", 404, {"function_id": function_id})
        self.function_id = function_id


class FunctionRuntimeError(InngestBridgeError):
    """Raised when a handler or one of its steps fails."""

    code = "FUNCTION_RUNTIME_ERROR"

    def __init__(
        self,
        message: str,
        function_id: Optional[str] = None,
        run_id: Optional[str] = None,
        original_error: Optional[BaseException] = None
    ):
        super().__init__(message, 500, {"function_id": function_id, "run_id": run_id})
        self.function_id = function_id
        self.run_id = run_id
        self.original_error = original_error

    def to_dict(self, function_id: Optional[str] = None) -> Dict[str, Any]:
        payload = super().to_dict(function_id or self.function_id)
        payload["error"]["run_id"] = self.run_id
        return payload


class FunctionTimeoutError(FunctionRuntimeError):
    """Raised when a handler does not settle within its configured timeout."""

    code = "FUNCTION_TIMEOUT"
    severity = Severity.WARNING

    def __init__(self, function_id: str, run_id: Optional[str], timeout_ms: int):
        super().__init__(
            f"Function {function_id} timed out after {timeout_ms}ms",
            function_id,
            run_id,
        )
        self.timeout_ms = timeout_ms
        self.details["timeout_ms"] = timeout_ms


class StepError(InngestBridgeError):
    """Raised when a step fails or the orchestrator reports a step error."""

    code = "STEP_ERROR"

    def __init__(self, message: str, step_id: Optional[str] = None):
        super().__init__(message, 500, {"step_id": step_id})
        self.step_id = step_id


class StepIdConflictError(StepError):
    """Raised when a step id is reused within one run."""

    code = "STEP_ID_CONFLICT"

    def __init__(self, step_id: str):
        super().__init__(f"Step id already used in this run: {step_id}", step_id)


class StepAbandonedError(StepError):
    """Raised when an abandoned (timed-out) run tries to start another step."""

    code = "STEP_ABANDONED"

    def __init__(self, step_id: str, run_id: str):
        super().__init__(f"Run {run_id} was abandoned; step {step_id} not started", step_id)
        self.run_id = run_id


class EventSendError(InngestBridgeError):
    """Raised when events cannot be delivered to the orchestrator."""

    code = "EVENT_SEND_ERROR"

    def __init__(
        self,
        message: str = "Failed to send event to Inngest",
        event_names: Optional[List[str]] = None,
        original_error: Optional[BaseException] = None
    ):
        super().__init__(message, 502, {"events": event_names or []})
        self.event_names = event_names or []
        self.original_error = original_error
