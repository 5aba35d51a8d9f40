"""Typed event definitions for domain events.

These events represent things that happen in the pipeline:
- RecordingResolved: A recording was resolved to an identity
- LedgerRowWritten: A ledger row was inserted or updated
"""

from pydantic import Field

from coach_ledger.events.base import Event


class RecordingResolved(Event):
    """Emitted when a recording has been resolved, before any ledger write."""

    external_id: str | None = Field(default=None, description="Upstream ID")
    data_source: str = Field(description="Canonical data source tag")
    coach: str
    student: str
    week_number: int
    week_method: str
    overall_confidence: int = Field(ge=0, le=100)
    standardized_name: str


class LedgerRowWritten(Event):
    """Emitted after a batch write to the ledger succeeded, once per row."""

    partition: str = Field(description="Ledger tab written to")
    action: str = Field(description="inserted | updated")
    changed_fields: list[str] = Field(default_factory=list)
