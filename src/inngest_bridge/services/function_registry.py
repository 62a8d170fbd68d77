"""Function registry and the ``inngest_function`` decorator.

Functions are declared with the decorator (which validates the config and
attaches it to the function object) and registered by ``discover`` when the
owning instances are handed to the bridge at startup, or registered
explicitly with ``register`` / ``register_handler``.
"""

import inspect
import logging
import threading
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from ..core.constants import ERROR_MESSAGES
from ..core.exceptions import FunctionNotFoundError, RegistrationError
from ..schemas.functions import EventTrigger, FunctionConfig, FunctionHandler, FunctionMetadata

logger = logging.getLogger(__name__)

# Attribute holding the validated config on decorated functions
FUNCTION_MARKER = "__inngest_function_config__"


def _validation_messages(error: ValidationError) -> List[str]:
    messages = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "config"
        messages.append(f"{location}: {err['msg']}")
    return messages


def _build_config(config: Any) -> FunctionConfig:
    if isinstance(config, FunctionConfig):
        return config
    try:
        return FunctionConfig.model_validate(config)
    except ValidationError as e:
        function_id = config.get("id") if isinstance(config, dict) else None
        raise RegistrationError(
            f"Invalid configuration for function {function_id or '<unknown>'}",
            function_id=function_id,
            errors=_validation_messages(e),
        ) from e


def inngest_function(config: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Callable:
    """Mark a function or method as an orchestrator function.

    Accepts either a config dict or keyword arguments::

        @inngest_function(id="send-welcome-email", triggers=[{"event": "user.created"}])
        async def send_welcome_email(self, event, context):
            ...

    The config is validated immediately, so a bad declaration fails at import
    time rather than on the first webhook call.
    """
    function_config = _build_config({**(config or {}), **kwargs})

    def decorator(func: Callable) -> Callable:
        if not callable(func):
            raise RegistrationError(
                f"Decorated object for {function_config.id} is not callable",
                function_id=function_config.id,
            )
        setattr(func, FUNCTION_MARKER, function_config)
        return func

    return decorator


def get_function_config(func: Any) -> Optional[FunctionConfig]:
    """Config attached by ``inngest_function``, if any."""
    return getattr(func, FUNCTION_MARKER, None)


class FunctionRegistry:
    """Holds every function the orchestrator may invoke, keyed by id."""

    def __init__(self):
        self._functions: Dict[str, FunctionMetadata] = {}
        self._lock = threading.Lock()

    def register(
        self,
        config: Any,
        handler: FunctionHandler,
        target: Any = None,
        method_name: Optional[str] = None,
    ) -> FunctionMetadata:
        """Validate and store one function.

        Raises:
            RegistrationError: invalid shape, non-callable handler or
                duplicate id. Existing registrations are left untouched.
        """
        function_config = _build_config(config)
        if not callable(handler):
            raise RegistrationError(
                f"Handler for function {function_config.id} is not callable",
                function_id=function_config.id,
            )

        metadata = FunctionMetadata(
            config=function_config,
            handler=handler,
            target=target,
            method_name=method_name or getattr(handler, "__name__", None),
        )

        with self._lock:
            existing = self._functions.get(function_config.id)
            if existing is not None:
                raise RegistrationError(
                    f"Duplicate function ID '{function_config.id}': already registered by "
                    f"{existing.owner}. {ERROR_MESSAGES['DUPLICATE_FUNCTION_ID']}",
                    function_id=function_config.id,
                )
            self._functions[function_config.id] = metadata

        logger.info(f"Registered function {function_config.id} ({metadata.owner})")
        return metadata

    def register_handler(self, instance: Any, method: Any, config: Any = None) -> FunctionMetadata:
        """Register a bound method of ``instance`` explicitly.

        ``method`` may be the method itself or its name; ``config`` defaults
        to the one attached by the decorator.
        """
        method_name = method if isinstance(method, str) else getattr(method, "__name__", None)
        if not method_name or not hasattr(instance, method_name):
            raise RegistrationError(
                f"{type(instance).__name__} has no method {method_name!r}",
                function_id=getattr(config, "id", None) if config is not None else None,
            )
        handler = getattr(instance, method_name)
        function_config = config if config is not None else get_function_config(handler)
        if function_config is None:
            raise RegistrationError(
                f"{type(instance).__name__}.{method_name} has no function configuration"
            )
        return self.register(function_config, handler, target=instance, method_name=method_name)

    def discover(self, instances: Iterable[Any], strict: bool = False) -> int:
        """Register every decorated method found on ``instances``.

        Re-discovering the same method of the same instance is a no-op.
        Returns the number of newly registered functions. Errors are logged
        and collected; with ``strict`` the first one is raised.
        """
        registered = 0
        errors: List[RegistrationError] = []

        for instance in instances:
            for method_name, member in inspect.getmembers(type(instance), callable):
                function_config = get_function_config(member)
                if function_config is None:
                    continue

                existing = self.get_function(function_config.id)
                if existing is not None and existing.target is instance and existing.method_name == method_name:
                    continue

                try:
                    self.register(
                        function_config,
                        getattr(instance, method_name),
                        target=instance,
                        method_name=method_name,
                    )
                    registered += 1
                except RegistrationError as e:
                    logger.error(f"Failed to register {type(instance).__name__}.{method_name}: {e.message}")
                    errors.append(e)

        if errors and strict:
            raise errors[0]

        logger.info(f"Discovered {registered} new function(s); {self.get_function_count()} total")
        return registered

    def get_function(self, function_id: str) -> Optional[FunctionMetadata]:
        return self._functions.get(function_id)

    def require_function(self, function_id: str) -> FunctionMetadata:
        metadata = self._functions.get(function_id)
        if metadata is None:
            raise FunctionNotFoundError(function_id)
        return metadata

    def has_function(self, function_id: str) -> bool:
        return function_id in self._functions

    def list_functions(self) -> List[FunctionMetadata]:
        return list(self._functions.values())

    def function_ids(self) -> List[str]:
        return list(self._functions.keys())

    def get_function_count(self) -> int:
        return len(self._functions)

    def get_functions_by_target(self, target: Any) -> List[FunctionMetadata]:
        return [m for m in self._functions.values() if m.target is target]

    def to_definitions(self, app_url: Optional[str] = None) -> List[Dict[str, Any]]:
        """Wire definitions for introspection and registration.

        When ``app_url`` is given each definition also carries the step URL
        the orchestrator should call back.
        """
        definitions = []
        for metadata in self._functions.values():
            definition = metadata.to_definition()
            if app_url:
                definition["steps"] = {
                    "step": {
                        "id": "step",
                        "name": "step",
                        "runtime": {"type": "http", "url": f"{app_url}?fnId={metadata.id}&stepId=step"},
                    }
                }
            definitions.append(definition)
        return definitions

    def validate_functions(self) -> None:
        """Re-check every registered function; raises one aggregated error."""
        problems: List[str] = []
        for function_id, metadata in self._functions.items():
            if not callable(metadata.handler):
                problems.append(f"{function_id}: handler is not callable")
            if not metadata.config.triggers:
                problems.append(f"{function_id}: {ERROR_MESSAGES['INVALID_TRIGGERS']}")

        if problems:
            raise RegistrationError(
                f"Function validation failed with {len(problems)} problem(s)",
                errors=problems,
            )

    def get_stats(self) -> Dict[str, Any]:
        by_trigger: Counter = Counter()
        by_class: Counter = Counter()
        for metadata in self._functions.values():
            for trigger in metadata.config.triggers:
                by_trigger["event" if isinstance(trigger, EventTrigger) else "cron"] += 1
            owner = type(metadata.target).__name__ if metadata.target is not None else "<function>"
            by_class[owner] += 1

        return {
            "total_functions": len(self._functions),
            "functions_by_trigger_type": dict(by_trigger),
            "functions_by_class": dict(by_class),
        }

    def clear(self) -> None:
        with self._lock:
            self._functions.clear()
