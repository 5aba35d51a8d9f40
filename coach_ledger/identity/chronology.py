"""Per-pair chronology of past week resolutions.

The chronology is the only week-inference state that outlives a run. The
store interface is small so it can live in memory (single process, tests)
or in libSQL (shared between workers and restarts).
"""

from collections.abc import Iterable
from typing import Protocol

import structlog

from coach_ledger.models.identity import UNKNOWN, WeekMethod
from coach_ledger.models.ledger import ChronologyEntry, LedgerRecord

logger = structlog.get_logger()


def pair_key(coach: str, student: str) -> tuple[str, str]:
    """Case-insensitive key for a (coach, student) pair."""
    return (" ".join(coach.split()).lower(), " ".join(student.split()).lower())


class ChronologyStore(Protocol):
    """Storage of chronology entries, one per recording."""

    async def entries(self, coach: str, student: str) -> list[ChronologyEntry]:
        """Entries for the pair ordered by date."""
        ...

    async def append(self, entry: ChronologyEntry) -> bool:
        """Record an entry, replacing the one with the same external_id.

        Returns False if nothing changed.
        """
        ...


class InMemoryChronologyStore:
    """Process-local chronology store."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], list[ChronologyEntry]] = {}

    async def entries(self, coach: str, student: str) -> list[ChronologyEntry]:
        return list(self._entries.get(pair_key(coach, student), []))

    async def append(self, entry: ChronologyEntry) -> bool:
        chronology = self._entries.setdefault(pair_key(entry.coach, entry.student), [])
        for i, existing in enumerate(chronology):
            if entry.external_id and existing.external_id == entry.external_id:
                if existing == entry:
                    return False
                chronology[i] = entry
                break
            if (
                not entry.external_id
                and existing.date == entry.date
                and existing.week_number == entry.week_number
            ):
                return False
        else:
            chronology.append(entry)
        chronology.sort(key=lambda e: e.date)
        return True


async def seed_chronology(
    store: ChronologyStore, records: Iterable[LedgerRecord]
) -> int:
    """Load chronology entries from existing standardized ledger rows.

    Rows with an unknown coach or student, without a date, or whose week
    was only a sequential guess are skipped.

    Args:
        store: Store to append to
        records: Standardized ledger rows

    Returns:
        Number of entries added
    """
    added = 0
    for record in records:
        if UNKNOWN in (record.coach, record.student) or record.date is None:
            continue
        if record.week_method == WeekMethod.SEQUENTIAL:
            continue
        entry = ChronologyEntry(
            coach=record.coach,
            student=record.student,
            date=record.date,
            week_number=record.week_number,
            external_id=record.external_id,
        )
        if await store.append(entry):
            added += 1
    logger.info("Seeded chronology from ledger", entries=added)
    return added
