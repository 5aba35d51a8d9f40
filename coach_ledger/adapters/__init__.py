"""Adapters for the collaborators around the resolution engine.

This module provides adapters for integrating with external systems:
- SheetsLedgerBackend: Ledger partitions as Google Sheets tabs
- InMemoryLedgerBackend: Ledger held in memory (dry runs, tests)
- DriveAdapter / DriveTranscriptProvider: Drive folders and transcripts
- RosterAdapter: Load the roster from Google Sheets
- LedgerBackend / TranscriptProvider: Collaborator protocols
- WriteResult: Result model for ledger writes
"""

from coach_ledger.adapters.base import (
    LedgerBackend,
    TranscriptProvider,
    WriteResult,
)
from coach_ledger.adapters.drive_adapter import DriveAdapter, DriveTranscriptProvider
from coach_ledger.adapters.memory_ledger import InMemoryLedgerBackend
from coach_ledger.adapters.roster_adapter import RosterAdapter
from coach_ledger.adapters.sheets_adapter import SheetsLedgerBackend

__all__ = [
    "DriveAdapter",
    "DriveTranscriptProvider",
    "InMemoryLedgerBackend",
    "LedgerBackend",
    "RosterAdapter",
    "SheetsLedgerBackend",
    "TranscriptProvider",
    "WriteResult",
]
