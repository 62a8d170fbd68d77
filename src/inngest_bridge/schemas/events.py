"""Event schemas."""

from typing import Any, Dict, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class InngestEvent(BaseModel):
    """An event as sent to, or delivered by, the orchestrator."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)
    user: Optional[Dict[str, Any]] = None
    ts: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("ts", "timestamp"),
        description="Epoch milliseconds",
    )
    id: Optional[str] = None
    v: Optional[str] = Field(default=None, description="Event schema version")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Event name must be a non-empty string")
        return v

    @field_validator("data", mode="before")
    @classmethod
    def default_data(cls, v: Any) -> Any:
        return {} if v is None else v

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
