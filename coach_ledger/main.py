"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from coach_ledger.adapters.base import LedgerBackend
from coach_ledger.adapters.drive_adapter import DriveAdapter, DriveTranscriptProvider
from coach_ledger.adapters.memory_ledger import InMemoryLedgerBackend
from coach_ledger.adapters.roster_adapter import RosterAdapter
from coach_ledger.adapters.sheets_adapter import SheetsLedgerBackend
from coach_ledger.api.router import api_router
from coach_ledger.config import Settings, settings
from coach_ledger.db.turso import TursoClient
from coach_ledger.events import Event, EventBus, LedgerRowWritten, RecordingResolved
from coach_ledger.identity.chronology import (
    ChronologyStore,
    InMemoryChronologyStore,
    seed_chronology,
)
from coach_ledger.identity.name_resolver import (
    NameResolver,
    NameResolverStrategy,
    PassthroughNameResolver,
)
from coach_ledger.identity.schemas import RosterConfig
from coach_ledger.identity.source_fusion import SourceFusionExtractor
from coach_ledger.identity.week_inferencer import (
    FixedWeekInferencer,
    WeekInferencer,
    WeekInferencerStrategy,
)
from coach_ledger.ledger.fingerprint import FingerprintIndex, InMemorySeenStore
from coach_ledger.ledger.partitions import known_partitions
from coach_ledger.ledger.sync_engine import LEDGER_SOURCE, LedgerSyncEngine
from coach_ledger.models.ledger import LedgerRecord
from coach_ledger.pipeline.processor import RecordingProcessor
from coach_ledger.pipeline.retry import NoRetry, RetryPolicy
from coach_ledger.repositories.chronology_repo import ChronologyRepository
from coach_ledger.repositories.fingerprint_repo import SeenFingerprintRepository

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_name_resolver(config: Settings, roster: RosterConfig) -> NameResolverStrategy:
    """Select the name resolver strategy named by NAME_RESOLVER.

    Raises:
        ValueError: If the strategy name is unknown
    """
    if config.name_resolver == "roster":
        return NameResolver(roster)
    if config.name_resolver == "passthrough":
        return PassthroughNameResolver()
    raise ValueError(f"Unknown name resolver: {config.name_resolver}")


def build_week_inferencer(
    config: Settings, roster: RosterConfig, chronology: ChronologyStore
) -> WeekInferencerStrategy:
    """Select the week inferencer strategy named by WEEK_INFERENCER.

    Raises:
        ValueError: If the strategy name is unknown
    """
    if config.week_inferencer == "default":
        return WeekInferencer(
            roster,
            chronology,
            academic_year_start_month=config.academic_year_start_month,
        )
    if config.week_inferencer == "fixed":
        return FixedWeekInferencer()
    raise ValueError(f"Unknown week inferencer: {config.week_inferencer}")


def build_ledger_backend(config: Settings) -> LedgerBackend:
    """Select the ledger backend named by LEDGER_BACKEND.

    Raises:
        ValueError: If the backend name is unknown
    """
    if config.ledger_backend == "sheets":
        return SheetsLedgerBackend(
            spreadsheet_id=config.ledger_spreadsheet_id,
            credentials_path=config.google_sheets_credentials,
        )
    if config.ledger_backend == "memory":
        return InMemoryLedgerBackend()
    raise ValueError(f"Unknown ledger backend: {config.ledger_backend}")


async def load_roster(config: Settings) -> RosterConfig:
    """Load the roster from ROSTER_PATH, else the roster sheet, else empty."""
    if config.roster_path:
        roster = RosterConfig.from_file(config.roster_path)
    elif config.roster_spreadsheet_id:
        adapter = RosterAdapter(credentials_path=config.google_sheets_credentials)
        roster = await adapter.load_roster_config(config.roster_spreadsheet_id)
    else:
        logger.warning("No roster configured, names will not resolve")
        roster = RosterConfig()

    if config.staff_email_domains and not roster.staff_email_domains:
        roster = roster.model_copy(
            update={"staff_email_domains": list(config.staff_email_domains)}
        )
    logger.info(
        f"Roster {roster.version} loaded: {len(roster.coaches)} coaches, "
        f"{len(roster.students)} students"
    )
    return roster


def log_pipeline_event(event: Event) -> None:
    """Audit log of resolutions and ledger writes."""
    logger.info(f"{event.event_type}: {event.to_log_dict()}")


async def _seed_from_ledger(
    backend: LedgerBackend,
    chronology: ChronologyStore,
    retry: RetryPolicy | None = None,
) -> int:
    """Rebuild an in-memory chronology from the standardized ledger views.

    Rows that do not parse are logged and skipped.
    """
    retry = retry or NoRetry()
    added = 0
    for partition in known_partitions():
        rows = await retry.call(LEDGER_SOURCE, backend.get_rows, partition.standardized)
        records = []
        for row in rows:
            try:
                records.append(LedgerRecord.from_row(row))
            except ValueError as e:
                logger.warning(
                    f"Skipping unreadable ledger row {row.get('fingerprint')!r} "
                    f"in {partition.standardized}: {e}"
                )
        added += await seed_chronology(chronology, records)
    logger.info(f"Chronology seeded with {added} entries from the ledger")
    return added


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management.

    Startup:
    - Load the roster
    - Open shared state (memory, or Turso repositories)
    - Wire the resolution pipeline and ledger sync engine

    Shutdown:
    - Flush pending ledger writes
    - Close database connection
    """
    logger.info(f"Starting {settings.app_name}...")

    roster = await load_roster(settings)
    backend = build_ledger_backend(settings)
    retry = RetryPolicy.from_settings(settings)
    event_bus = EventBus()
    for event_type in (RecordingResolved, LedgerRowWritten):
        event_bus.subscribe(event_type, log_pipeline_event)

    db = None
    if settings.state_backend == "turso":
        db = TursoClient()
        await db.connect()
        chronology = ChronologyRepository(db, retry=retry)
        await chronology.initialize()
        seen = SeenFingerprintRepository(db, retry=retry)
        await seen.initialize()
        logger.info(f"State database connected: {db.url}")
    else:
        chronology = InMemoryChronologyStore()
        seen = InMemorySeenStore()
        try:
            await _seed_from_ledger(backend, chronology, retry)
        except Exception as e:
            logger.warning(f"Chronology seeding skipped: {e}")

    resolver = build_name_resolver(settings, roster)
    index = FingerprintIndex(seen)
    engine = LedgerSyncEngine(
        backend,
        index=index,
        batch_size=settings.ledger_batch_size,
        retry=retry,
        event_bus=event_bus,
    )

    drive_adapter = None
    transcripts = None
    if settings.google_drive_credentials or settings.google_sheets_credentials:
        drive_adapter = DriveAdapter()
        transcripts = DriveTranscriptProvider(drive_adapter)

    processor = RecordingProcessor(
        resolver,
        build_week_inferencer(settings, roster, chronology),
        index,
        engine=engine,
        transcripts=transcripts,
        extractor=SourceFusionExtractor(
            resolver,
            staff_email_domains=roster.staff_email_domains,
        ),
        retry=retry,
        event_bus=event_bus,
    )

    app.state.db = db
    app.state.roster = roster
    app.state.event_bus = event_bus
    app.state.ledger_backend = backend
    app.state.engine = engine
    app.state.drive_adapter = drive_adapter
    app.state.processor = processor
    logger.info("Recording pipeline initialized")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    try:
        await engine.flush()
    finally:
        if db is not None:
            await db.close()
            logger.info("Database connection closed")


app = FastAPI(
    title=settings.app_name,
    description="Coaching session metadata resolution and ledger sync",
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coach_ledger.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
