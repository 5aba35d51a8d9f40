"""Canonical data models for the coaching ledger sync engine.

This module exports all domain models used throughout the application:
- RawRecordingEvent: One recording as reported by an upstream source
- Candidate: A value proposed for one identity field by one source
- NameResolution / WeekResult: Outputs of the name and week resolvers
- ResolvedIdentity: Canonical coach/student/week/date with confidences
- LedgerRecord / RawLedgerRecord: Standardized and raw ledger rows
- ChronologyEntry: Past week resolution for a coach/student pair
"""

from coach_ledger.models.identity import (
    UNKNOWN,
    Candidate,
    CandidateField,
    CandidateSource,
    NameMatchMethod,
    NameResolution,
    ResolvedIdentity,
    WeekMethod,
    WeekResult,
)
from coach_ledger.models.ledger import (
    ChronologyEntry,
    LedgerRecord,
    LedgerRow,
    LedgerWrite,
    RawLedgerRecord,
    UpsertAction,
    UpsertResult,
)
from coach_ledger.models.recording import (
    DataSource,
    Participant,
    RawRecordingEvent,
    SourceFile,
    normalize_data_source,
)

__all__ = [
    # Recording
    "DataSource",
    "Participant",
    "RawRecordingEvent",
    "SourceFile",
    "normalize_data_source",
    # Identity
    "UNKNOWN",
    "Candidate",
    "CandidateField",
    "CandidateSource",
    "NameMatchMethod",
    "NameResolution",
    "ResolvedIdentity",
    "WeekMethod",
    "WeekResult",
    # Ledger
    "ChronologyEntry",
    "LedgerRecord",
    "LedgerRow",
    "LedgerWrite",
    "RawLedgerRecord",
    "UpsertAction",
    "UpsertResult",
]
