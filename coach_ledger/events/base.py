"""Base Event class for all domain events."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class Event(BaseModel):
    """Base class for all domain events.

    Events are immutable records of things that happened in the pipeline.

    Attributes:
        event_id: Unique identifier for this event instance
        timestamp: When the event occurred
        fingerprint: Fingerprint of the session the event relates to
        metadata: Additional context about the event
    """

    model_config = ConfigDict(
        frozen=True,  # Events are immutable
        str_strip_whitespace=True,
    )

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the event occurred",
    )
    fingerprint: str | None = Field(
        default=None,
        description="Session fingerprint",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event context",
    )

    @property
    def event_type(self) -> str:
        """Return the event type name (class name)."""
        return self.__class__.__name__

    def to_log_dict(self) -> dict[str, Any]:
        """Flatten the event into structured log fields."""
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            **self.model_dump(exclude={"event_id", "timestamp", "metadata"}, mode="json"),
        }
