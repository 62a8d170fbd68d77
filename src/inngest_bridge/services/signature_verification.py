"""Webhook signature verification (HMAC-SHA256)."""

import hashlib
import hmac
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..core.config import Settings
from ..core.constants import (
    ERROR_MESSAGES,
    MAX_RECOMMENDED_TOLERANCE_SECONDS,
    MIN_SIGNING_KEY_LENGTH,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
)
from ..core.development import DevelopmentMode
from ..core.exceptions import ConfigError, SignatureFailureReason, SignatureVerificationError
from ..adapters.base import HttpRequestData

logger = logging.getLogger(__name__)

_HEX_DIGEST = re.compile(r"[0-9a-fA-F]{64}")


@dataclass
class SignatureHeader:
    """Parsed ``X-Inngest-Signature`` header."""
    signature: str
    timestamp: int


def compute_digest(raw_body: bytes, signing_key: str, timestamp: int) -> str:
    """Hex HMAC-SHA256 over ``"{timestamp}."`` followed by the raw body."""
    message = f"{timestamp}.".encode("utf-8") + raw_body
    return hmac.new(signing_key.encode("utf-8"), message, hashlib.sha256).hexdigest()


def parse_signature_header(header: str, timestamp_header: Optional[str] = None) -> SignatureHeader:
    """Parse ``s=<hex>,t=<unix seconds>`` (``&`` also accepted).

    A header carrying only the digest takes its timestamp from
    ``X-Inngest-Timestamp``.

    Raises:
        SignatureVerificationError: reason ``malformed_header``.
    """
    header = header.strip()
    components: Dict[str, str] = {}
    if "=" in header:
        for part in re.split(r"[,&]", header):
            key, sep, value = part.strip().partition("=")
            if sep and key and value:
                components[key.strip().lower()] = value.strip()
    else:
        components["s"] = header
    if "t" not in components and timestamp_header:
        components["t"] = timestamp_header.strip()

    signature = components.get("s")
    timestamp_value = components.get("t")
    if not signature or not timestamp_value:
        raise SignatureVerificationError(
            "Invalid signature header format: missing required components (s, t)",
            SignatureFailureReason.MALFORMED_HEADER,
        )
    if not _HEX_DIGEST.fullmatch(signature):
        raise SignatureVerificationError(
            "Invalid signature header format: signature is not a hex SHA-256 digest",
            SignatureFailureReason.MALFORMED_HEADER,
        )
    try:
        timestamp = int(timestamp_value)
    except ValueError:
        raise SignatureVerificationError(
            "Invalid signature header format: invalid timestamp",
            SignatureFailureReason.MALFORMED_HEADER,
        )

    return SignatureHeader(signature=signature.lower(), timestamp=timestamp)


class SignatureVerificationService:
    """Authenticates webhook calls from the orchestrator."""

    def __init__(self, settings: Settings, development_mode: Optional[DevelopmentMode] = None):
        self.settings = settings
        self.development_mode = development_mode or DevelopmentMode(settings)
        self._stats = {"verified": 0, "rejected": 0, "bypassed": 0}

    def verify_webhook_signature(
        self,
        request: HttpRequestData,
        signing_key: Optional[str] = None,
        tolerance_seconds: Optional[int] = None,
        fallback_signing_key: Optional[str] = None,
    ) -> None:
        """Verify ``request``; returns quietly or raises ``SignatureVerificationError``.

        Keys default to the configured ``SIGNING_KEY`` / ``SIGNING_KEY_FALLBACK``.
        """
        if self.development_mode.should_disable_signature_verification():
            self._stats["bypassed"] += 1
            logger.warning(f"Signature verification bypassed (development mode) for {request.method} {request.path}")
            return

        signing_key = signing_key or self.settings.SIGNING_KEY
        fallback_signing_key = fallback_signing_key or self.settings.SIGNING_KEY_FALLBACK
        if tolerance_seconds is None:
            tolerance_seconds = self.settings.SIGNATURE_TOLERANCE_SECONDS

        try:
            self._verify(request, signing_key, tolerance_seconds, fallback_signing_key)
        except SignatureVerificationError as e:
            self._stats["rejected"] += 1
            logger.warning(f"Rejected webhook {request.method} {request.path}: {e.message}")
            raise
        self._stats["verified"] += 1

    def _verify(
        self,
        request: HttpRequestData,
        signing_key: Optional[str],
        tolerance_seconds: int,
        fallback_signing_key: Optional[str],
    ) -> None:
        if not signing_key:
            raise SignatureVerificationError(
                ERROR_MESSAGES["MISSING_SIGNING_KEY"],
                SignatureFailureReason.MISSING_SIGNING_KEY,
            )

        header = request.header(SIGNATURE_HEADER)
        if not header:
            raise SignatureVerificationError(
                "Missing signature header (x-inngest-signature)",
                SignatureFailureReason.MISSING_HEADER,
            )

        parsed = parse_signature_header(header, request.header(TIMESTAMP_HEADER))

        # Replay window applies even when the digest matches
        drift = abs(int(time.time()) - parsed.timestamp)
        if drift > tolerance_seconds:
            raise SignatureVerificationError(
                f"Request timestamp too old or too far in the future. "
                f"Difference: {drift}s, Tolerance: {tolerance_seconds}s",
                SignatureFailureReason.EXPIRED_TIMESTAMP,
            )

        for key in (signing_key, fallback_signing_key):
            if not key:
                continue
            expected = compute_digest(request.raw_body, key, parsed.timestamp)
            if hmac.compare_digest(expected, parsed.signature):
                if key is fallback_signing_key:
                    logger.info("Webhook signature matched the fallback signing key")
                return

        raise SignatureVerificationError(
            ERROR_MESSAGES["SIGNATURE_VERIFICATION_FAILED"],
            SignatureFailureReason.DIGEST_MISMATCH,
        )

    def validate_signature_config(
        self,
        signing_key: Optional[str] = None,
        tolerance_seconds: Optional[int] = None,
    ) -> None:
        """Startup check of the signing configuration.

        Raises:
            ConfigError: no signing key, or a negative tolerance.
        """
        signing_key = signing_key if signing_key is not None else self.settings.SIGNING_KEY
        if tolerance_seconds is None:
            tolerance_seconds = self.settings.SIGNATURE_TOLERANCE_SECONDS

        if not signing_key:
            raise ConfigError(ERROR_MESSAGES["MISSING_SIGNING_KEY"], field="SIGNING_KEY")
        if len(signing_key) < MIN_SIGNING_KEY_LENGTH:
            logger.warning(
                f"Signing key is shorter than {MIN_SIGNING_KEY_LENGTH} characters; use a longer key"
            )
        if tolerance_seconds < 0:
            raise ConfigError("Signature tolerance must not be negative", field="SIGNATURE_TOLERANCE_SECONDS")
        if tolerance_seconds > MAX_RECOMMENDED_TOLERANCE_SECONDS:
            logger.warning(
                f"Signature tolerance of {tolerance_seconds}s exceeds the recommended "
                f"{MAX_RECOMMENDED_TOLERANCE_SECONDS}s"
            )

    @staticmethod
    def create_signature(
        body: Union[bytes, str],
        signing_key: str,
        timestamp: Optional[int] = None,
    ) -> str:
        """Build an ``X-Inngest-Signature`` header value for ``body``."""
        if isinstance(body, str):
            body = body.encode("utf-8")
        if timestamp is None:
            timestamp = int(time.time())
        return f"s={compute_digest(body, signing_key, timestamp)},t={timestamp}"

    def get_verification_status(self) -> Dict[str, Any]:
        bypassed = self.development_mode.should_disable_signature_verification()
        return {
            "enabled": not bypassed,
            "has_signing_key": bool(self.settings.SIGNING_KEY),
            "has_fallback_key": bool(self.settings.SIGNING_KEY_FALLBACK),
            "tolerance_seconds": self.settings.SIGNATURE_TOLERANCE_SECONDS,
            "development_bypass": bypassed,
            **self._stats,
        }
