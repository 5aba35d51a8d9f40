"""Ledger rows, chronology entries and upsert outcomes.

Ledger rows are flattened to string cells because that is what the
spreadsheet backend stores and returns; comparisons for update/skip
decisions are made on those cells.
"""

import datetime as dt
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coach_ledger.models.identity import ResolvedIdentity, WeekMethod
from coach_ledger.models.recording import RawRecordingEvent

# Column excluded when deciding whether a row changed
TIMESTAMP_COLUMN = "last_updated_at"


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, dt.datetime | dt.date):
        return value.isoformat()
    return str(value)


class LedgerRow(BaseModel):
    """Base for records stored as one spreadsheet row keyed by fingerprint."""

    model_config = ConfigDict(frozen=True)

    COLUMNS: ClassVar[tuple[str, ...]] = ()

    fingerprint: str
    data_source: str
    last_updated_at: dt.datetime | None = None

    @field_validator("*", mode="before")
    @classmethod
    def empty_cell_is_none(cls, v: Any) -> Any:
        """Blank spreadsheet cells become None so optional fields parse."""
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    def to_row(self) -> dict[str, str]:
        """Flatten to ordered string cells."""
        return {column: _cell(getattr(self, column)) for column in self.COLUMNS}

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "LedgerRow":
        """Parse a row read back from the ledger, ignoring unknown columns."""
        return cls.model_validate({k: v for k, v in row.items() if k in cls.COLUMNS})


def changed_columns(new: dict[str, str], old: dict[str, str]) -> list[str]:
    """Columns whose cell differs between two rows, ignoring the timestamp."""
    return [
        column
        for column, value in new.items()
        if column != TIMESTAMP_COLUMN and old.get(column, "") != value
    ]


class LedgerRecord(LedgerRow):
    """Standardized view: the resolved identity of one session."""

    COLUMNS: ClassVar[tuple[str, ...]] = (
        "fingerprint",
        "external_id",
        "date",
        "coach",
        "student",
        "session_type",
        "week_number",
        "week_method",
        "coach_confidence",
        "student_confidence",
        "session_type_confidence",
        "week_confidence",
        "date_confidence",
        "overall_confidence",
        "standardized_name",
        "data_source",
        "last_updated_at",
    )

    external_id: str | None = None
    date: dt.date | None = None
    coach: str
    student: str
    session_type: str
    week_number: int
    week_method: WeekMethod
    coach_confidence: int = 0
    student_confidence: int = 0
    session_type_confidence: int = 0
    week_confidence: int = 0
    date_confidence: int = 0
    overall_confidence: int = 0
    standardized_name: str = ""

    @classmethod
    def from_identity(
        cls,
        fingerprint: str,
        identity: ResolvedIdentity,
        data_source: str,
        external_id: str | None = None,
        updated_at: dt.datetime | None = None,
    ) -> "LedgerRecord":
        conf = identity.per_field_confidence
        return cls(
            fingerprint=fingerprint,
            external_id=external_id,
            date=identity.date,
            coach=identity.coach,
            student=identity.student,
            session_type=identity.session_type,
            week_number=identity.week_number,
            week_method=identity.week_method,
            coach_confidence=conf.get("coach", 0),
            student_confidence=conf.get("student", 0),
            session_type_confidence=conf.get("session_type", 0),
            week_confidence=conf.get("week", 0),
            date_confidence=conf.get("date", 0),
            overall_confidence=identity.overall_confidence,
            standardized_name=identity.standardized_name,
            data_source=data_source,
            last_updated_at=updated_at,
        )


class RawLedgerRecord(LedgerRow):
    """Raw view: what the upstream platform reported for the recording."""

    COLUMNS: ClassVar[tuple[str, ...]] = (
        "fingerprint",
        "external_id",
        "topic",
        "start_time",
        "duration_seconds",
        "host_identity",
        "participant_count",
        "file_count",
        "total_size_bytes",
        "data_source",
        "last_updated_at",
    )

    external_id: str | None = None
    topic: str | None = None
    start_time: dt.datetime | None = None
    duration_seconds: int = 0
    host_identity: str | None = None
    participant_count: int = 0
    file_count: int = 0
    total_size_bytes: int = 0

    @classmethod
    def from_event(
        cls,
        fingerprint: str,
        event: RawRecordingEvent,
        updated_at: dt.datetime | None = None,
    ) -> "RawLedgerRecord":
        return cls(
            fingerprint=fingerprint,
            external_id=event.external_id,
            topic=event.topic,
            start_time=event.start_time,
            duration_seconds=event.duration_seconds,
            host_identity=event.host,
            participant_count=event.participant_count,
            file_count=len(event.source_files),
            total_size_bytes=event.total_size_bytes,
            data_source=event.data_source,
            last_updated_at=updated_at,
        )


class UpsertAction(str, Enum):
    """Outcome of one ledger upsert."""

    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"


class UpsertResult(BaseModel):
    """What the sync engine did (or planned) for one fingerprint."""

    action: UpsertAction
    fingerprint: str
    partition: str
    changed_fields: list[str] = Field(default_factory=list)


class LedgerWrite(BaseModel):
    """A planned row write handed to the ledger backend.

    ``previous`` is the row as the engine last read it (None for inserts);
    backends compare it with the live row to detect concurrent writers.
    An update whose ``previous`` row carries another fingerprint re-keys
    that row, e.g. when a reprocessed recording resolved to a new week.
    """

    model_config = ConfigDict(frozen=True)

    fingerprint: str
    columns: tuple[str, ...]
    row: dict[str, str]
    previous: dict[str, str] | None = None
    changed_fields: tuple[str, ...] = ()

    @property
    def is_insert(self) -> bool:
        return self.previous is None

    @property
    def target(self) -> str:
        """Fingerprint of the stored row this write applies to."""
        if self.previous and self.previous.get("fingerprint"):
            return self.previous["fingerprint"]
        return self.fingerprint


class ChronologyEntry(BaseModel):
    """One past week resolution for a (coach, student) pair."""

    model_config = ConfigDict(frozen=True)

    coach: str
    student: str
    date: dt.date
    week_number: int = Field(ge=1)
    external_id: str | None = None
