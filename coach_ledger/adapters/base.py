"""Base types for collaborator adapters.

This module defines the LedgerBackend and TranscriptProvider protocols and
the WriteResult model returned by ledger writes.
"""

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from coach_ledger.models.ledger import LedgerWrite
from coach_ledger.models.recording import RawRecordingEvent


class WriteResult(BaseModel):
    """Result of a batch write to the ledger.

    Captures what was written along with metadata about the write
    (spreadsheet ID, URL, timing).
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    success: bool = Field(description="Whether the write succeeded")
    partition: str = Field(description="Tab written to")
    inserted: int = Field(default=0, description="Rows appended")
    updated: int = Field(default=0, description="Rows with changed cells rewritten")
    external_id: str | None = Field(
        default=None, description="Spreadsheet ID when backed by Sheets"
    )
    url: str | None = Field(default=None, description="Web view link if available")
    duration_ms: int | None = Field(
        default=None, description="Operation duration in milliseconds"
    )

    @property
    def item_count(self) -> int:
        return self.inserted + self.updated


@runtime_checkable
class LedgerBackend(Protocol):
    """Tabular store of record, keyed by fingerprint within a partition.

    Implementations compare each write's ``previous`` row against the live
    row and raise LedgerConflict (writing nothing) when another writer got
    there first.
    """

    async def get_rows(self, partition: str) -> list[dict[str, str]]:
        """Read every row of a partition as column -> cell dictionaries."""
        ...

    async def batch_upsert(
        self, partition: str, writes: list[LedgerWrite]
    ) -> WriteResult:
        """Apply inserts and cell updates in one round trip.

        Raises:
            LedgerConflict: If any target row changed since it was read
        """
        ...

    async def health_check(self) -> bool:
        """Check if the backend is configured and reachable."""
        ...


@runtime_checkable
class TranscriptProvider(Protocol):
    """Optional source of transcript text for week inference."""

    async def get_transcript_text(self, event: RawRecordingEvent) -> str | None:
        """Transcript text for the recording, or None if there is none."""
        ...
