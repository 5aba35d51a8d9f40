"""Event infrastructure for the ledger sync pipeline.

Provides:
- Event: Base class for all domain events
- EventBus: In-process pub/sub for event routing
"""

from coach_ledger.events.base import Event
from coach_ledger.events.bus import EventBus
from coach_ledger.events.types import LedgerRowWritten, RecordingResolved

__all__ = [
    # Base
    "Event",
    # Infrastructure
    "EventBus",
    # Event types
    "LedgerRowWritten",
    "RecordingResolved",
]
