"""Bridge services."""

from .function_registry import FunctionRegistry, inngest_function, get_function_config
from .step_tools import StepTools, StepCall, StepInterrupt, StepSuspension, parse_duration
from .execution_context import ExecutionContext, ExecutionContextService
from .signature_verification import SignatureVerificationService, SignatureHeader, parse_signature_header
from .event_client import InngestEventClient
from .retry_handler import RetryConfig, RetryHandler

__all__ = [
    "FunctionRegistry",
    "inngest_function",
    "get_function_config",
    "StepTools",
    "StepCall",
    "StepInterrupt",
    "StepSuspension",
    "parse_duration",
    "ExecutionContext",
    "ExecutionContextService",
    "SignatureVerificationService",
    "SignatureHeader",
    "parse_signature_header",
    "InngestEventClient",
    "RetryConfig",
    "RetryHandler",
]
