"""Entity mutation (trigger) API schemas."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from app.shared.enums import MutationType


class EntityMutationRequest(BaseModel):
    """One insert/update/delete on a tracked table, as reported by the data platform."""

    event_type: MutationType
    table_name: str = Field(..., min_length=1, max_length=128)
    after: dict[str, Any] | None = None
    before: dict[str, Any] | None = None
    event_id: str | None = Field(default=None, min_length=1, max_length=255)

    @field_validator("event_type", mode="before")
    @classmethod
    def normalize_event_type(cls, v: Any) -> Any:
        """Accept INSERT/UPDATE/DELETE as sent by database webhooks."""
        return v.lower() if isinstance(v, str) else v


class TriggerResponse(BaseModel):
    """Execution ids enqueued for the mutation (existing ids on redelivery)."""

    enqueued: list[str]
    created: int = 0
