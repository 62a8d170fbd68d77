"""Webhook request/response schemas."""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from ..core.constants import SDK_LANGUAGE, SDK_NAME, SDK_VERSION
from .events import InngestEvent


class WebhookExecutionRequest(BaseModel):
    """Body of a POST from the orchestrator asking to run a function."""
    model_config = ConfigDict(extra="ignore")

    function_id: str = Field(..., min_length=1)
    event: InngestEvent
    run_id: str = Field(..., min_length=1)
    attempt: int = Field(default=1, ge=1)
    steps: Dict[str, Any] = Field(
        default_factory=dict,
        description="Step state supplied by the orchestrator, keyed by step id",
    )


class SdkInfo(BaseModel):
    """Identifies this bridge to the orchestrator."""
    name: str = SDK_NAME
    version: str = SDK_VERSION
    language: str = SDK_LANGUAGE
    framework: Optional[str] = None


class RegistrationPayload(BaseModel):
    """Introspection (GET) and registration handshake (PUT) body."""
    functions: List[Dict[str, Any]]
    sdk: SdkInfo
    app_id: str
    function_count: int
    mode: Literal["dev", "cloud"]
    url: Optional[str] = None
    registered: Optional[bool] = None


class ExecutionSuccessResponse(BaseModel):
    status: Literal["ok"] = "ok"
    result: Any = None


class StepOpResponse(BaseModel):
    """One step as reported back to the orchestrator."""
    id: str
    op: str
    status: str
    opts: Dict[str, Any] = Field(default_factory=dict)
    data: Any = None
    error: Optional[str] = None


class PendingStepResponse(BaseModel):
    """Run suspended at a step; the orchestrator re-invokes later."""
    status: Literal["pending"] = "pending"
    function_id: str
    run_id: str
    attempt: int
    steps: List[StepOpResponse]
