"""Webhook controller: the GET / PUT / POST state machine of the endpoint."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from ..adapters.base import HttpRequestData
from ..adapters.platform_detector import PlatformDetector
from ..core.config import Settings
from ..core.constants import MAX_RECOMMENDED_TOLERANCE_SECONDS, MIN_SIGNING_KEY_LENGTH, SDK_HEADER, SDK_NAME, SDK_VERSION
from ..core.development import DevelopmentMode
from ..core.exceptions import (
    ConfigError,
    FunctionRuntimeError,
    FunctionTimeoutError,
    InngestBridgeError,
    InvalidRequestError,
    MethodNotAllowedError,
    RegistrationError,
)
from ..schemas.webhook import RegistrationPayload, SdkInfo, WebhookExecutionRequest
from ..services.event_client import InngestEventClient
from ..services.execution_context import ExecutionContext, ExecutionContextService
from ..services.function_registry import FunctionRegistry
from ..services.signature_verification import SignatureVerificationService
from ..services.step_tools import StepSuspension

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "GET, PUT, POST"


class WebhookController:
    """Serves the orchestrator's calls over any supported web stack.

    ``handle`` takes the framework's native request (and optionally a native
    response to fill) and returns the framework's native response. Errors are
    normalized into the wire envelope here and nowhere else.
    """

    def __init__(
        self,
        settings: Settings,
        registry: FunctionRegistry,
        execution_service: ExecutionContextService,
        signature_service: SignatureVerificationService,
        development_mode: Optional[DevelopmentMode] = None,
        event_client: Optional[InngestEventClient] = None,
    ):
        self.settings = settings
        self.registry = registry
        self.execution_service = execution_service
        self.signature_service = signature_service
        self.development_mode = development_mode or DevelopmentMode(settings)
        self.event_client = event_client

    async def handle(self, native_request: Any, native_response: Any = None) -> Any:
        adapter = PlatformDetector.create_adapter_from_request(native_request)
        request = await adapter.extract_request(native_request)
        self.development_mode.log(f"{request.method} {request.path}", {"platform": adapter.get_platform_name()})

        status_code, body = await self.dispatch(request, framework=adapter.get_platform_name())

        response = adapter.wrap_response(native_response)
        response.status(status_code).header(SDK_HEADER, f"{SDK_NAME}:{SDK_VERSION}")
        if status_code == 405:
            response.header("Allow", ALLOWED_METHODS)
        return response.json(body)

    async def dispatch(self, request: HttpRequestData, framework: Optional[str] = None) -> Tuple[int, Dict[str, Any]]:
        """Route a normalized request; returns ``(status_code, json_body)``."""
        function_id: Optional[str] = None
        try:
            if request.method == "GET":
                return 200, self.build_registration_payload(framework)
            if request.method == "PUT":
                return 200, await self._register(request, framework)
            if request.method == "POST":
                function_id = self._requested_function_id(request)
                return await self._execute(request)
            raise MethodNotAllowedError(request.method)
        except InngestBridgeError as e:
            if e.status_code >= 500:
                logger.error(f"{request.method} {request.path} failed: [{e.code}] {e.message}")
            else:
                logger.warning(f"{request.method} {request.path} rejected: [{e.code}] {e.message}")
            return e.status_code, e.to_dict(function_id)

    def build_registration_payload(self, framework: Optional[str] = None, url: Optional[str] = None) -> Dict[str, Any]:
        """Introspection body: function definitions and SDK identity, no secrets."""
        functions = self.registry.to_definitions(url)
        payload = RegistrationPayload(
            functions=functions,
            sdk=SdkInfo(framework=framework),
            app_id=self.settings.APP_ID,
            function_count=len(functions),
            mode="dev" if self.development_mode.enabled else "cloud",
            url=url,
        )
        return payload.model_dump(exclude_none=True)

    async def _register(self, request: HttpRequestData, framework: Optional[str]) -> Dict[str, Any]:
        self.signature_service.verify_webhook_signature(request)

        url = self.settings.APP_URL or request.url.split("?", 1)[0]
        payload = self.build_registration_payload(framework, url=url)
        if self.settings.REGISTER_URL and self.event_client is not None:
            await self.event_client.register_app(payload)
            payload["registered"] = True
        return payload

    async def _execute(self, request: HttpRequestData) -> Tuple[int, Dict[str, Any]]:
        self.signature_service.verify_webhook_signature(request)
        execution_request = self._parse_execution_request(request)

        metadata = self.registry.require_function(execution_request.function_id)
        context = self.execution_service.create_execution_context(
            metadata,
            execution_request.event,
            execution_request.run_id,
            attempt=execution_request.attempt,
            steps=execution_request.steps,
        )

        try:
            result = await self.execution_service.execute_function(context)
        except FunctionTimeoutError:
            raise
        except Exception as e:
            logger.error(
                f"Function {context.function_id} run {context.run_id} attempt {context.attempt} "
                f"failed: {type(e).__name__}: {e}",
                exc_info=self.development_mode.is_verbose_logging_enabled(),
            )
            raise FunctionRuntimeError(
                str(e) or type(e).__name__,
                function_id=context.function_id,
                run_id=context.run_id,
                original_error=e,
            ) from e

        if isinstance(result, StepSuspension):
            return 206, self._json_safe(result.to_response().model_dump(), context)
        return 200, {"status": "ok", "result": self._json_safe(result, context)}

    @staticmethod
    def _json_safe(value: Any, context: ExecutionContext) -> Any:
        # NaN and infinity have no JSON encoding
        value = to_jsonable_python(value, fallback=str)
        try:
            json.dumps(value, allow_nan=False)
        except ValueError as e:
            raise FunctionRuntimeError(
                f"Function result is not JSON serializable: {e}",
                function_id=context.function_id,
                run_id=context.run_id,
                original_error=e,
            ) from e
        return value

    @staticmethod
    def _requested_function_id(request: HttpRequestData) -> Optional[str]:
        if isinstance(request.body, dict) and isinstance(request.body.get("function_id"), str):
            return request.body["function_id"]
        return request.query.get("fnId")

    @staticmethod
    def _parse_execution_request(request: HttpRequestData) -> WebhookExecutionRequest:
        body = request.body
        if not isinstance(body, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        if "function_id" not in body and request.query.get("fnId"):
            body = {**body, "function_id": request.query["fnId"]}
        try:
            return WebhookExecutionRequest.model_validate(body)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
                for err in e.errors()
            ]
            raise InvalidRequestError("Invalid execution request", {"errors": errors}) from e

    def get_health_status(self) -> Dict[str, Any]:
        function_count = self.registry.get_function_count()
        verification = self.signature_service.get_verification_status()
        healthy = function_count > 0 and (self.development_mode.enabled or verification["has_signing_key"])
        return {
            "status": "healthy" if healthy else "degraded",
            "app_id": self.settings.APP_ID,
            "mode": "dev" if self.development_mode.enabled else "cloud",
            "sdk": SdkInfo().model_dump(exclude_none=True),
            "function_count": function_count,
            "signature_verification": verification,
            "executions": self.execution_service.get_execution_stats(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def validate_webhook_config(self) -> Dict[str, Any]:
        """Readiness report: configuration errors and warnings, never raises."""
        errors: List[str] = []
        warnings: List[str] = []

        try:
            self.signature_service.validate_signature_config()
        except ConfigError as e:
            (warnings if self.development_mode.enabled else errors).append(e.message)
        signing_key = self.settings.SIGNING_KEY
        if signing_key and len(signing_key) < MIN_SIGNING_KEY_LENGTH:
            warnings.append(f"Signing key is shorter than {MIN_SIGNING_KEY_LENGTH} characters")
        if self.settings.SIGNATURE_TOLERANCE_SECONDS > MAX_RECOMMENDED_TOLERANCE_SECONDS:
            warnings.append(
                f"Signature tolerance exceeds the recommended {MAX_RECOMMENDED_TOLERANCE_SECONDS}s"
            )

        try:
            self.registry.validate_functions()
        except RegistrationError as e:
            errors.extend(e.errors or [e.message])

        if self.registry.get_function_count() == 0:
            warnings.append("No functions registered")
        if not self.settings.EVENT_KEY:
            warnings.append("INNGEST_EVENT_KEY is not set; step.send_event will fail")
        if self.development_mode.should_disable_signature_verification():
            warnings.append("Signature verification is disabled (development mode)")

        return {"valid": not errors, "errors": errors, "warnings": warnings}
