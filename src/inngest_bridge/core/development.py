"""Development mode switches.

Every switch here is inert unless the settings are development-shaped
(``INNGEST_IS_DEV=true`` or ``INNGEST_ENVIRONMENT=development``), and each
active switch is announced in the log when the bridge starts.
"""

import logging
from typing import Any, Optional

from .config import Settings

logger = logging.getLogger(__name__)


class DevelopmentMode:
    """Development-only behaviour derived from settings."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.enabled = settings.is_development

    def announce(self) -> None:
        """Log which development features are active."""
        if not self.enabled:
            if self.settings.DISABLE_SIGNATURE_VERIFICATION:
                logger.warning(
                    "DISABLE_SIGNATURE_VERIFICATION is ignored outside development mode"
                )
            return

        logger.info("Development mode enabled")
        if self.settings.VERBOSE_LOGGING:
            logger.info("Verbose logging enabled")
        if self.settings.MOCK_EXTERNAL_CALLS:
            logger.info("External calls to the orchestrator will be mocked")
        if self.settings.DISABLE_SIGNATURE_VERIFICATION:
            logger.warning("Signature verification DISABLED for development")
        if self.settings.DEVELOPMENT_TIMEOUT_MS:
            logger.info(f"Development timeout: {self.settings.DEVELOPMENT_TIMEOUT_MS}ms")

    def should_disable_signature_verification(self) -> bool:
        return self.enabled and self.settings.DISABLE_SIGNATURE_VERIFICATION

    def should_mock_external_calls(self) -> bool:
        return self.enabled and self.settings.MOCK_EXTERNAL_CALLS

    def is_verbose_logging_enabled(self) -> bool:
        return self.enabled and self.settings.VERBOSE_LOGGING

    def get_timeout(self, default_timeout_ms: int) -> int:
        """Development timeout (longer for debugging) or the given default."""
        if self.enabled and self.settings.DEVELOPMENT_TIMEOUT_MS:
            return self.settings.DEVELOPMENT_TIMEOUT_MS
        return default_timeout_ms

    def log(self, message: str, context: Optional[Any] = None) -> None:
        """Log a development-only debug line."""
        if not self.is_verbose_logging_enabled():
            return
        if context is not None:
            logger.debug(f"[DEV] {message} {context}")
        else:
            logger.debug(f"[DEV] {message}")
