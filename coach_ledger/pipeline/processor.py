"""Per-recording pipeline: extract, resolve, infer week, aggregate, upsert."""

import contextlib

import structlog
from pydantic import BaseModel, Field

from coach_ledger.adapters.base import TranscriptProvider
from coach_ledger.events.bus import EventBus
from coach_ledger.events.types import RecordingResolved
from coach_ledger.identity.chronology import pair_key
from coach_ledger.identity.confidence import (
    ConfidenceAggregator,
    resolve_candidate_names,
)
from coach_ledger.identity.name_resolver import NameResolverStrategy
from coach_ledger.identity.source_fusion import SourceFusionExtractor
from coach_ledger.identity.week_inferencer import WeekInferencerStrategy
from coach_ledger.ledger.fingerprint import FingerprintIndex
from coach_ledger.ledger.sync_engine import LedgerSyncEngine
from coach_ledger.models.identity import UNKNOWN, ResolvedIdentity, WeekMethod
from coach_ledger.models.ledger import UpsertResult
from coach_ledger.models.recording import RawRecordingEvent
from coach_ledger.pipeline.locks import KeyedLock
from coach_ledger.pipeline.retry import NoRetry, RetryPolicy

logger = structlog.get_logger()

TRANSCRIPT_SOURCE = "transcript"


class RecordingOutcome(BaseModel):
    """What happened to one recording."""

    external_id: str | None = None
    data_source: str
    fingerprint: str
    identity: ResolvedIdentity
    standardized: UpsertResult | None = Field(
        default=None, description="Standardized view upsert, None when not synced"
    )
    raw: UpsertResult | None = Field(default=None, description="Raw view upsert")


class RecordingProcessor:
    """Runs one recording through resolution and (optionally) the ledger.

    Week inference, aggregation and the chronology append for a known
    (coach, student) pair run under that pair's lock, so concurrent
    sessions of one pair see each other's weeks.
    """

    def __init__(
        self,
        resolver: NameResolverStrategy,
        week_inferencer: WeekInferencerStrategy,
        index: FingerprintIndex,
        engine: LedgerSyncEngine | None = None,
        transcripts: TranscriptProvider | None = None,
        extractor: SourceFusionExtractor | None = None,
        aggregator: ConfidenceAggregator | None = None,
        retry: RetryPolicy | None = None,
        pair_locks: KeyedLock | None = None,
        event_bus: EventBus | None = None,
    ):
        self._resolver = resolver
        self._weeks = week_inferencer
        self._index = index
        self._engine = engine
        self._transcripts = transcripts
        self._extractor = extractor or SourceFusionExtractor(resolver)
        self._aggregator = aggregator or ConfidenceAggregator()
        self._retry = retry or NoRetry()
        self._pair_locks = pair_locks if pair_locks is not None else KeyedLock()
        self._bus = event_bus

    @property
    def engine(self) -> LedgerSyncEngine | None:
        return self._engine

    async def resolve(self, event: RawRecordingEvent) -> tuple[ResolvedIdentity, str]:
        """Resolve an event to an identity and its fingerprint.

        Malformed events are resolved with placeholders; their missing
        fields are noted in the identity evidence.

        Args:
            event: Recording to resolve

        Returns:
            (ResolvedIdentity, fingerprint)
        """
        candidates = self._extractor.extract(event)
        names = resolve_candidate_names(candidates, self._resolver)
        selection = self._aggregator.select(candidates, names, event.start_time)
        coach, student = selection.coach_name, selection.student_name

        notes = [f"missing: {field}" for field in event.missing_fields()]
        if notes:
            logger.warning(
                "Malformed recording event",
                external_id=event.external_id,
                missing=event.missing_fields(),
            )

        known_pair = UNKNOWN not in (coach, student)
        lock = (
            self._pair_locks.hold(pair_key(coach, student))
            if known_pair
            else contextlib.nullcontext()
        )
        async with lock:
            week = await self._weeks.infer_week(event, coach, student, selection.date)
            if week.method == WeekMethod.SEQUENTIAL and self._transcripts is not None:
                text = await self._fetch_transcript(event)
                if text:
                    week = await self._weeks.infer_week(
                        event, coach, student, selection.date, transcript_text=text
                    )

            identity = self._aggregator.aggregate(
                candidates,
                names,
                week,
                start_time=event.start_time,
                evidence=notes,
                staff_host=self._extractor.is_staff_host(event),
                duration_seconds=event.duration_seconds,
            )
            if week.method != WeekMethod.SEQUENTIAL:
                await self._weeks.update_chronology(
                    identity.coach,
                    identity.student,
                    identity.date,
                    identity.week_number,
                    external_id=event.external_id,
                )

        fingerprint = self._index.compute_key(identity, event.external_id)
        logger.info(
            "Recording resolved",
            external_id=event.external_id,
            fingerprint=fingerprint,
            coach=identity.coach,
            student=identity.student,
            week=identity.week_number,
            week_method=identity.week_method.value,
            overall_confidence=identity.overall_confidence,
        )
        if self._bus is not None:
            await self._bus.publish(
                RecordingResolved(
                    fingerprint=fingerprint,
                    external_id=event.external_id,
                    data_source=event.data_source,
                    coach=identity.coach,
                    student=identity.student,
                    week_number=identity.week_number,
                    week_method=identity.week_method.value,
                    overall_confidence=identity.overall_confidence,
                    standardized_name=identity.standardized_name,
                )
            )
        return identity, fingerprint

    async def process(self, event: RawRecordingEvent) -> RecordingOutcome:
        """Resolve an event and upsert both ledger views.

        Without an engine the outcome carries the resolution only.
        """
        identity, fingerprint = await self.resolve(event)
        outcome = RecordingOutcome(
            external_id=event.external_id,
            data_source=event.data_source,
            fingerprint=fingerprint,
            identity=identity,
        )
        if self._engine is None:
            return outcome

        outcome.standardized = await self._engine.upsert(
            fingerprint, identity, event.data_source_tag, external_id=event.external_id
        )
        outcome.raw = await self._engine.upsert_raw(fingerprint, event)
        return outcome

    async def _fetch_transcript(self, event: RawRecordingEvent) -> str | None:
        """Transcript text, or None when the provider fails."""
        try:
            return await self._retry.call(
                TRANSCRIPT_SOURCE, self._transcripts.get_transcript_text, event
            )
        except Exception as e:
            logger.warning(
                "Transcript unavailable, skipping transcript week method",
                external_id=event.external_id,
                error=str(e),
            )
            return None
