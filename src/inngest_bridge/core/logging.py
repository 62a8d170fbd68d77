"""Logging setup and run-scoped loggers."""

import logging
from typing import Any, MutableMapping, Tuple

from .config import Settings


def configure_logging(settings: Settings) -> None:
    """Configure root logging from settings."""
    level = "DEBUG" if settings.is_development and settings.VERBOSE_LOGGING else settings.LOG_LEVEL
    logging.basicConfig(level=level, format=settings.LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


class RunLoggerAdapter(logging.LoggerAdapter):
    """Logger handed to handlers; prefixes every line with the run identity."""

    def __init__(self, logger: logging.Logger, function_id: str, run_id: str, attempt: int):
        super().__init__(logger, {"function_id": function_id, "run_id": run_id, "attempt": attempt})
        self.prefix = f"[{function_id}:{run_id}:{attempt}]"

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return f"{self.prefix} {msg}", kwargs
