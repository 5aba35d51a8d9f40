"""Pytest configuration and fixtures."""

from collections.abc import AsyncIterator
from datetime import UTC, date, datetime

import pytest
from httpx import ASGITransport, AsyncClient

from coach_ledger.adapters.memory_ledger import InMemoryLedgerBackend
from coach_ledger.events.bus import EventBus
from coach_ledger.identity.chronology import InMemoryChronologyStore
from coach_ledger.identity.name_resolver import NameResolver
from coach_ledger.identity.schemas import (
    CoachProfile,
    ProgramTimeline,
    RosterConfig,
    StudentProfile,
)
from coach_ledger.identity.source_fusion import SourceFusionExtractor
from coach_ledger.identity.week_inferencer import WeekInferencer
from coach_ledger.ledger.fingerprint import FingerprintIndex
from coach_ledger.ledger.sync_engine import LedgerSyncEngine
from coach_ledger.main import app
from coach_ledger.models.recording import Participant, RawRecordingEvent, SourceFile
from coach_ledger.pipeline.processor import RecordingProcessor

FIXED_NOW = datetime(2024, 10, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def roster() -> RosterConfig:
    """Two coaches, three students and one program timeline."""
    return RosterConfig(
        version="test",
        coaches=[
            CoachProfile(
                name="Jenny",
                aliases=["Jenny Duan"],
                emails=["jenny@coaching.example"],
                students=["Huda", "Andrew"],
            ),
            CoachProfile(name="Rachel", aliases=["Rachel Kim"], students=["Maya"]),
        ],
        students=[
            StudentProfile(name="Huda"),
            StudentProfile(name="Andrew", aliases=["Andy"]),
            StudentProfile(name="Maya"),
        ],
        programs=[
            ProgramTimeline(
                student="Maya",
                coach="Rachel",
                start_date=date(2024, 9, 2),
                total_weeks=12,
            )
        ],
        staff_email_domains=["coaching.example"],
    )


@pytest.fixture
def resolver(roster: RosterConfig) -> NameResolver:
    return NameResolver(roster)


@pytest.fixture
def chronology() -> InMemoryChronologyStore:
    return InMemoryChronologyStore()


@pytest.fixture
def week_inferencer(
    roster: RosterConfig, chronology: InMemoryChronologyStore
) -> WeekInferencer:
    return WeekInferencer(roster, chronology)


@pytest.fixture
def extractor(resolver: NameResolver, roster: RosterConfig) -> SourceFusionExtractor:
    return SourceFusionExtractor(resolver, roster.staff_email_domains)


@pytest.fixture
def backend() -> InMemoryLedgerBackend:
    return InMemoryLedgerBackend()


@pytest.fixture
def index() -> FingerprintIndex:
    return FingerprintIndex()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def engine(
    backend: InMemoryLedgerBackend, index: FingerprintIndex, event_bus: EventBus
) -> LedgerSyncEngine:
    """Engine with a fixed clock so repeated runs produce identical rows."""
    return LedgerSyncEngine(
        backend, index=index, batch_size=25, event_bus=event_bus, clock=lambda: FIXED_NOW
    )


@pytest.fixture
def processor(
    resolver: NameResolver,
    week_inferencer: WeekInferencer,
    index: FingerprintIndex,
    engine: LedgerSyncEngine,
    extractor: SourceFusionExtractor,
    event_bus: EventBus,
) -> RecordingProcessor:
    return RecordingProcessor(
        resolver,
        week_inferencer,
        index,
        engine=engine,
        extractor=extractor,
        event_bus=event_bus,
    )


@pytest.fixture
def coaching_event() -> RawRecordingEvent:
    """Jenny coaching Huda in week 5, announced in topic and file name."""
    return RawRecordingEvent(
        external_id="rec-001",
        topic="Jenny and Huda Wk05 notes",
        start_time=datetime(2024, 10, 7, 16, 0, tzinfo=UTC),
        duration_seconds=3600,
        participants=(
            Participant(name="Jenny Duan", is_host=True),
            Participant(name="Huda"),
        ),
        source_files=(SourceFile(name="Coaching_Wk05_video.mp4", size_bytes=1024),),
        data_source_tag="zoom-api",
    )


@pytest.fixture
def degraded_event() -> RawRecordingEvent:
    """Event with nothing to resolve from."""
    return RawRecordingEvent(external_id="rec-zzz", topic="zzz")


@pytest.fixture
async def client(
    backend: InMemoryLedgerBackend,
    engine: LedgerSyncEngine,
    processor: RecordingProcessor,
    event_bus: EventBus,
) -> AsyncIterator[AsyncClient]:
    """Async test client for the FastAPI app with an in-memory pipeline."""
    app.state.db = None
    app.state.event_bus = event_bus
    app.state.ledger_backend = backend
    app.state.engine = engine
    app.state.drive_adapter = None
    app.state.processor = processor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    del app.state.db
    del app.state.event_bus
    del app.state.ledger_backend
    del app.state.engine
    del app.state.drive_adapter
    del app.state.processor
