"""In-memory ledger backend for dry runs and tests.

Applies the same conflict rules as the Sheets backend so the sync engine
behaves identically against both.
"""

import structlog

from coach_ledger.adapters.base import WriteResult
from coach_ledger.errors import LedgerConflict
from coach_ledger.models.ledger import TIMESTAMP_COLUMN, LedgerWrite, changed_columns

logger = structlog.get_logger()


class InMemoryLedgerBackend:
    """Ledger held in a dict of partition -> ordered rows."""

    def __init__(self) -> None:
        self._tabs: dict[str, list[dict[str, str]]] = {}
        self.read_count = 0
        self.write_count = 0

    def rows(self, partition: str) -> list[dict[str, str]]:
        """Copy of the rows currently stored in a partition."""
        return [dict(row) for row in self._tabs.get(partition, [])]

    @property
    def partitions(self) -> list[str]:
        return list(self._tabs)

    def put_row(self, partition: str, row: dict[str, str]) -> None:
        """Write a row directly, bypassing conflict checks (simulates
        another writer)."""
        tab = self._tabs.setdefault(partition, [])
        for existing in tab:
            if existing.get("fingerprint") == row.get("fingerprint"):
                existing.update(row)
                return
        tab.append(dict(row))

    async def get_rows(self, partition: str) -> list[dict[str, str]]:
        self.read_count += 1
        return self.rows(partition)

    async def batch_upsert(
        self, partition: str, writes: list[LedgerWrite]
    ) -> WriteResult:
        tab = self._tabs.setdefault(partition, [])
        live = {row.get("fingerprint"): row for row in tab}

        conflicts = []
        for write in writes:
            current = live.get(write.target)
            if write.is_insert:
                if current is not None:
                    conflicts.append(write.fingerprint)
            elif current is None or changed_columns(write.previous or {}, current):
                conflicts.append(write.fingerprint)
        if conflicts:
            raise LedgerConflict(partition, conflicts)

        inserted = updated = 0
        for write in writes:
            if write.is_insert:
                tab.append(dict(write.row))
                inserted += 1
            else:
                row = live[write.target]
                for column in [*write.changed_fields, TIMESTAMP_COLUMN]:
                    if column in write.row:
                        row[column] = write.row[column]
                updated += 1

        self.write_count += 1
        logger.debug(
            "wrote ledger rows to memory",
            partition=partition,
            inserted=inserted,
            updated=updated,
        )
        return WriteResult(
            success=True, partition=partition, inserted=inserted, updated=updated
        )

    async def health_check(self) -> bool:
        return True
