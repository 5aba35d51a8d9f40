"""Bounded-concurrency batch runner.

A fixed pool of workers drains an asyncio.Queue of events. A failing
event is recorded in the report and the batch carries on; pending ledger
writes are flushed once every worker has stopped.
"""

import asyncio
import time
from collections.abc import Iterable

import structlog
from pydantic import BaseModel, Field

from coach_ledger.models.ledger import UpsertAction
from coach_ledger.models.recording import RawRecordingEvent
from coach_ledger.pipeline.processor import RecordingOutcome, RecordingProcessor

logger = structlog.get_logger()


class EventFailure(BaseModel):
    """One event (or the final flush) that could not be completed."""

    index: int | None = Field(default=None, description="Position in the batch")
    external_id: str | None = None
    error_type: str
    error: str


class BatchReport(BaseModel):
    """Aggregate result of one batch run."""

    total: int = 0
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    cancelled: bool = False
    duration_ms: int = 0
    outcomes: list[RecordingOutcome] = Field(default_factory=list)
    failures: list[EventFailure] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def record(self, outcome: RecordingOutcome) -> None:
        self.processed += 1
        self.outcomes.append(outcome)
        if outcome.standardized is None:
            return
        action = outcome.standardized.action
        if action == UpsertAction.INSERTED:
            self.inserted += 1
        elif action == UpsertAction.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1


class BatchRunner:
    """Runs events through a RecordingProcessor with a fixed worker pool."""

    def __init__(self, processor: RecordingProcessor, worker_count: int = 4):
        """Initialize runner.

        Args:
            processor: Per-event pipeline
            worker_count: Number of concurrent workers
        """
        self._processor = processor
        self._worker_count = max(1, worker_count)
        self._cancelled = False

    def cancel(self) -> None:
        """Stop workers after the event each one is currently processing."""
        self._cancelled = True

    async def run(self, events: Iterable[RawRecordingEvent]) -> BatchReport:
        """Process a batch of events.

        Args:
            events: Events in any order

        Returns:
            BatchReport with per-event outcomes and failures
        """
        self._cancelled = False
        start_time = time.monotonic()
        queue: asyncio.Queue[tuple[int, RawRecordingEvent]] = asyncio.Queue()
        for item in enumerate(events):
            queue.put_nowait(item)

        report = BatchReport(total=queue.qsize())
        logger.info(
            "Batch started", events=report.total, workers=self._worker_count
        )

        workers = [
            asyncio.create_task(self._worker(queue, report))
            for _ in range(self._worker_count)
        ]
        await asyncio.gather(*workers)

        engine = self._processor.engine
        if engine is not None:
            try:
                await engine.flush()
            except Exception as e:
                logger.error("Ledger flush failed", error=str(e))
                report.failures.append(
                    EventFailure(error_type=type(e).__name__, error=str(e))
                )

        report.cancelled = self._cancelled
        report.outcomes.sort(key=lambda o: o.external_id or "")
        report.duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Batch finished",
            processed=report.processed,
            inserted=report.inserted,
            updated=report.updated,
            skipped=report.skipped,
            failed=report.failed,
            cancelled=report.cancelled,
            duration_ms=report.duration_ms,
        )
        return report

    async def _worker(
        self,
        queue: asyncio.Queue[tuple[int, RawRecordingEvent]],
        report: BatchReport,
    ) -> None:
        while not self._cancelled:
            try:
                index, event = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                outcome = await self._processor.process(event)
            except Exception as e:
                logger.error(
                    "Event failed",
                    index=index,
                    external_id=event.external_id,
                    error=str(e),
                )
                report.failures.append(
                    EventFailure(
                        index=index,
                        external_id=event.external_id,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                )
            else:
                report.record(outcome)
            finally:
                queue.task_done()
