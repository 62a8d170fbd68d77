"""Constants shared across the bridge."""

import re

SDK_NAME = "inngest-bridge"
SDK_VERSION = "1.0.0"
SDK_LANGUAGE = "python"

DEFAULT_ENDPOINT = "/api/inngest"
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RETRIES = 3
DEFAULT_TOLERANCE_SECONDS = 300
DEFAULT_EVENT_API_URL = "https://inn.gs"

# Headers (compared lower-cased)
SIGNATURE_HEADER = "x-inngest-signature"
TIMESTAMP_HEADER = "x-inngest-timestamp"
SDK_HEADER = "x-inngest-sdk"

# Validation rules
FUNCTION_ID_PATTERN = re.compile(r"[a-z0-9]+(-[a-z0-9]+)*")
EVENT_NAME_PATTERN = re.compile(r"[a-z0-9]+(\.[a-z0-9]+)*")
APP_ID_PATTERN = r"^[a-zA-Z0-9-_]+$"
ENDPOINT_PATTERN = r"^/[a-zA-Z0-9-_/]*$"

TIMEOUT_MIN_MS = 1000
TIMEOUT_MAX_MS = 300000
RETRIES_MIN = 0
RETRIES_MAX = 10
CONCURRENCY_MIN = 1
CONCURRENCY_MAX = 1000
PRIORITY_MIN = 1
PRIORITY_MAX = 4
MIN_SIGNING_KEY_LENGTH = 32
MAX_RECOMMENDED_TOLERANCE_SECONDS = 3600

ERROR_MESSAGES = {
    "MISSING_SIGNING_KEY": "signing key is required for webhook signature verification",
    "INVALID_FUNCTION_ID": 'Function ID must be in kebab-case format (e.g. "user-created")',
    "INVALID_TRIGGERS": "At least one trigger must be specified",
    "FUNCTION_NOT_FOUND": "Function not found",
    "DUPLICATE_FUNCTION_ID": "Function ID must be unique within the application",
    "SIGNATURE_VERIFICATION_FAILED": "Webhook signature verification failed",
    "EVENT_SEND_FAILED": "Failed to send event to Inngest",
    "FUNCTION_EXECUTION_FAILED": "Function execution failed",
    "FUNCTION_TIMEOUT": "Function execution timed out",
    "INVALID_EVENT_NAME": "Event name must be a non-empty string",
    "INVALID_EVENT_DATA": "Event data must be a valid object",
}
