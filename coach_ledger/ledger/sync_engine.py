"""Idempotent upserts of resolved identities into the ledger.

Upsert protocol for one (partition, fingerprint):
1. Look the fingerprint up in the partition snapshot (read once, then kept
   current with planned writes)
2. Absent: look for the row of the same external_id, which a reprocessed
   recording re-keys. Still absent: plan an insert. Present and different:
   plan an update of the changed cells only. Identical: skip
3. Planned writes are coalesced per partition and sent in one
   ``batch_upsert`` call when the batch is full or on ``flush()``
4. On LedgerConflict the partition is re-read, writes are re-planned and
   retried once
5. Fingerprints are marked seen only after their write succeeded
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from coach_ledger.adapters.base import LedgerBackend
from coach_ledger.errors import LedgerConflict
from coach_ledger.events.bus import EventBus
from coach_ledger.events.types import LedgerRowWritten
from coach_ledger.ledger.fingerprint import FingerprintIndex, scoped
from coach_ledger.ledger.partitions import partition_for
from coach_ledger.models.identity import ResolvedIdentity
from coach_ledger.models.ledger import (
    LedgerRecord,
    LedgerWrite,
    RawLedgerRecord,
    UpsertAction,
    UpsertResult,
    changed_columns,
)
from coach_ledger.models.recording import RawRecordingEvent
from coach_ledger.pipeline.locks import KeyedLock
from coach_ledger.pipeline.retry import NoRetry, RetryPolicy

logger = structlog.get_logger()

LEDGER_SOURCE = "ledger"


def coalesce(writes: list[LedgerWrite]) -> list[LedgerWrite]:
    """Merge writes to the same row.

    The latest row wins but keeps the position and ``previous`` row of the
    first write, so writes to one row are never reordered. A write that
    re-keys a pending row merges into it. A merged write that ends up
    identical to its previous row is dropped.
    """
    merged: dict[str, LedgerWrite] = {}
    for write in writes:
        key = write.target if write.target in merged else write.fingerprint
        first = merged.get(key)
        if first is None:
            merged[write.fingerprint] = write
            continue
        if first.previous is None:
            changed: tuple[str, ...] = ()
        else:
            changed = tuple(changed_columns(write.row, first.previous))
        combined = LedgerWrite(
            fingerprint=write.fingerprint,
            columns=write.columns,
            row=write.row,
            previous=first.previous,
            changed_fields=changed,
        )
        merged = {
            (write.fingerprint if k == key else k): (combined if k == key else v)
            for k, v in merged.items()
        }
    return [w for w in merged.values() if w.is_insert or w.changed_fields]


def find_existing(
    rows: dict[str, dict[str, str]], fingerprint: str, external_id: str
) -> dict[str, str] | None:
    """Row stored under a fingerprint, else the row for the same recording."""
    existing = rows.get(fingerprint)
    if existing is not None or not external_id:
        return existing
    for row in rows.values():
        if row.get("external_id") == external_id:
            return row
    return None


class LedgerSyncEngine:
    """Keeps the ledger at one row per fingerprint per partition."""

    def __init__(
        self,
        backend: LedgerBackend,
        index: FingerprintIndex | None = None,
        batch_size: int = 25,
        retry: RetryPolicy | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize engine.

        Args:
            backend: Ledger storage collaborator
            index: Committed-fingerprint index shared by workers
            batch_size: Pending writes per partition that trigger a flush
            retry: Retry/timeout policy for backend calls
            event_bus: Receives LedgerRowWritten after successful writes
            clock: Source of last_updated_at timestamps
        """
        self._backend = backend
        self._index = index if index is not None else FingerprintIndex()
        self._batch_size = batch_size
        self._retry = retry or NoRetry()
        self._bus = event_bus
        self._clock = clock or (lambda: datetime.now(UTC))

        self._snapshots: dict[str, dict[str, dict[str, str]]] = {}
        self._pending: dict[str, list[LedgerWrite]] = {}
        self._row_locks = KeyedLock()
        self._load_locks: dict[str, asyncio.Lock] = {}
        self._flush_locks: dict[str, asyncio.Lock] = {}

    @property
    def index(self) -> FingerprintIndex:
        return self._index

    def pending_count(self, partition: str | None = None) -> int:
        if partition is not None:
            return len(self._pending.get(partition, []))
        return sum(len(writes) for writes in self._pending.values())

    async def upsert(
        self,
        fingerprint: str,
        identity: ResolvedIdentity,
        data_source_tag: str,
        external_id: str | None = None,
    ) -> UpsertResult:
        """Upsert the standardized row for a resolved identity.

        Args:
            fingerprint: Key from FingerprintIndex.compute_key
            identity: Resolved identity to record
            data_source_tag: Raw or canonical tag choosing the partition
            external_id: Upstream recording ID stored alongside the row

        Returns:
            UpsertResult with inserted, updated or skipped
        """
        partition = partition_for(data_source_tag)
        record = LedgerRecord.from_identity(
            fingerprint,
            identity,
            data_source=partition.data_source,
            external_id=external_id,
            updated_at=self._clock(),
        )
        return await self._plan(partition.standardized, fingerprint, record)

    async def upsert_raw(
        self, fingerprint: str, event: RawRecordingEvent
    ) -> UpsertResult:
        """Upsert the raw-view row describing what the source reported."""
        partition = partition_for(event.data_source_tag)
        record = RawLedgerRecord.from_event(
            fingerprint, event, updated_at=self._clock()
        )
        return await self._plan(partition.raw, fingerprint, record)

    async def _plan(
        self,
        partition: str,
        fingerprint: str,
        record: LedgerRecord | RawLedgerRecord,
    ) -> UpsertResult:
        row = record.to_row()
        external_id = row.get("external_id", "")
        async with self._row_locks.hold((partition, external_id or fingerprint)):
            snapshot = await self._snapshot(partition)
            existing = snapshot.get(fingerprint)

            if existing is None and await self._index.has_seen(
                scoped(partition, fingerprint)
            ):
                logger.info(
                    "Committed fingerprint missing from snapshot, refreshing",
                    partition=partition,
                    fingerprint=fingerprint,
                )
                snapshot = await self._snapshot(partition, refresh=True)
                existing = snapshot.get(fingerprint)

            if existing is None:
                existing = find_existing(snapshot, fingerprint, external_id)
                if existing is not None:
                    logger.info(
                        "Recording re-keyed",
                        partition=partition,
                        external_id=external_id,
                        old_fingerprint=existing.get("fingerprint"),
                        fingerprint=fingerprint,
                    )
                    snapshot.pop(existing.get("fingerprint", ""), None)

            if existing is None:
                action = UpsertAction.INSERTED
                changed: list[str] = []
            else:
                changed = changed_columns(row, existing)
                if not changed:
                    logger.debug(
                        "Ledger row unchanged",
                        partition=partition,
                        fingerprint=fingerprint,
                    )
                    return UpsertResult(
                        action=UpsertAction.SKIPPED,
                        fingerprint=fingerprint,
                        partition=partition,
                    )
                action = UpsertAction.UPDATED

            snapshot[fingerprint] = row
            pending = self._pending.setdefault(partition, [])
            pending.append(
                LedgerWrite(
                    fingerprint=fingerprint,
                    columns=record.COLUMNS,
                    row=row,
                    previous=existing,
                    changed_fields=tuple(changed),
                )
            )
            should_flush = len(pending) >= self._batch_size

        logger.info(
            "Ledger write planned",
            action=action.value,
            partition=partition,
            fingerprint=fingerprint,
            changed_fields=changed,
        )
        if should_flush:
            await self.flush_partition(partition)
        return UpsertResult(
            action=action,
            fingerprint=fingerprint,
            partition=partition,
            changed_fields=changed,
        )

    async def _snapshot(
        self, partition: str, refresh: bool = False
    ) -> dict[str, dict[str, str]]:
        """Snapshot of a partition, loading it on first use.

        A refresh re-reads the backend and re-applies writes still pending
        so planned inserts are not planned twice.
        """
        lock = self._load_locks.setdefault(partition, asyncio.Lock())
        async with lock:
            if refresh or partition not in self._snapshots:
                rows = await self._retry.call(
                    LEDGER_SOURCE, self._backend.get_rows, partition
                )
                snapshot = {
                    row["fingerprint"]: row for row in rows if row.get("fingerprint")
                }
                for write in self._pending.get(partition, []):
                    snapshot.pop(write.target, None)
                    snapshot[write.fingerprint] = write.row
                self._snapshots[partition] = snapshot
                logger.debug(
                    "Ledger snapshot loaded", partition=partition, rows=len(rows)
                )
            return self._snapshots[partition]

    async def flush(self) -> None:
        """Send every pending write."""
        for partition in list(self._pending):
            await self.flush_partition(partition)

    async def flush_partition(self, partition: str) -> None:
        """Send pending writes for one partition in a single batch.

        Raises:
            LedgerConflict: If the partition changed again after one re-plan
            SourceUnavailable: If the backend stayed unreachable
        """
        lock = self._flush_locks.setdefault(partition, asyncio.Lock())
        async with lock:
            writes = coalesce(self._pending.pop(partition, []))
            if not writes:
                return

            try:
                try:
                    await self._retry.call(
                        LEDGER_SOURCE, self._backend.batch_upsert, partition, writes
                    )
                except LedgerConflict as e:
                    logger.warning(
                        "Ledger conflict, re-planning",
                        partition=partition,
                        fingerprints=e.fingerprints,
                    )
                    writes = await self._replan(partition, writes)
                    if writes:
                        await self._retry.call(
                            LEDGER_SOURCE,
                            self._backend.batch_upsert,
                            partition,
                            writes,
                        )
            except Exception:
                # Snapshot holds rows that never reached the backend
                self._snapshots.pop(partition, None)
                logger.error(
                    "Ledger batch failed",
                    partition=partition,
                    writes=len(writes),
                )
                raise

            for write in writes:
                await self._index.mark_seen(scoped(partition, write.fingerprint))
            logger.info("Ledger batch written", partition=partition, writes=len(writes))

        if self._bus is not None:
            for write in writes:
                await self._bus.publish(
                    LedgerRowWritten(
                        fingerprint=write.fingerprint,
                        partition=partition,
                        action=(
                            UpsertAction.INSERTED.value
                            if write.is_insert
                            else UpsertAction.UPDATED.value
                        ),
                        changed_fields=list(write.changed_fields),
                    )
                )

    async def _replan(
        self, partition: str, writes: list[LedgerWrite]
    ) -> list[LedgerWrite]:
        """Re-plan writes against a fresh read of the partition."""
        live = await self._retry.call(LEDGER_SOURCE, self._backend.get_rows, partition)
        live_rows = {row["fingerprint"]: row for row in live if row.get("fingerprint")}

        replanned: list[LedgerWrite] = []
        for write in writes:
            current = find_existing(
                live_rows, write.fingerprint, write.row.get("external_id", "")
            )
            if current is None:
                replanned.append(
                    write.model_copy(update={"previous": None, "changed_fields": ()})
                )
                continue
            changed = changed_columns(write.row, current)
            if changed:
                replanned.append(
                    write.model_copy(
                        update={"previous": current, "changed_fields": tuple(changed)}
                    )
                )

        snapshot = dict(live_rows)
        for write in [*writes, *self._pending.get(partition, [])]:
            snapshot.pop(write.target, None)
            snapshot[write.fingerprint] = write.row
        self._snapshots[partition] = snapshot
        return replanned
