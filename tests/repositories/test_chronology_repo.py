"""Tests for ChronologyRepository."""

from datetime import date
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from coach_ledger.db.turso import TursoClient
from coach_ledger.identity.week_inferencer import WeekInferencer
from coach_ledger.models.identity import WeekMethod
from coach_ledger.models.ledger import ChronologyEntry
from coach_ledger.models.recording import RawRecordingEvent
from coach_ledger.pipeline.retry import RetryPolicy
from coach_ledger.repositories.chronology_repo import ChronologyRepository


@pytest.fixture
async def db_client(tmp_path: Path):
    """Create a temp file database client for testing."""
    db_path = tmp_path / "test_chronology.db"
    client = TursoClient(url=f"file:{db_path}")
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
async def repo(db_client: TursoClient):
    """Create ChronologyRepository with initialized table."""
    repo = ChronologyRepository(db_client)
    await repo.initialize()
    return repo


@pytest.mark.asyncio
async def test_initialize_creates_table(db_client: TursoClient):
    """Initialize should create chronology_entries table."""
    repo = ChronologyRepository(db_client)
    await repo.initialize()

    result = await db_client.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='chronology_entries'"
    )
    assert len(result.rows) == 1


@pytest.mark.asyncio
async def test_append_and_read_in_date_order(repo: ChronologyRepository):
    """Entries come back oldest first regardless of append order."""
    await repo.append(
        ChronologyEntry(coach="Jenny", student="Huda", date=date(2024, 10, 15), week_number=6, external_id="b")
    )
    await repo.append(
        ChronologyEntry(coach="Jenny", student="Huda", date=date(2024, 10, 1), week_number=4, external_id="a")
    )

    entries = await repo.entries("Jenny", "Huda")

    assert [e.week_number for e in entries] == [4, 6]
    assert entries[0].date == date(2024, 10, 1)
    assert entries[0].external_id == "a"


@pytest.mark.asyncio
async def test_pair_lookup_is_case_insensitive(repo: ChronologyRepository):
    await repo.append(
        ChronologyEntry(coach="Jenny", student="Huda", date=date(2024, 10, 1), week_number=4)
    )

    entries = await repo.entries("JENNY", "huda")

    assert len(entries) == 1
    assert await repo.entries("Jenny", "Andrew") == []


@pytest.mark.asyncio
async def test_same_recording_recorded_once(repo: ChronologyRepository):
    """Re-appending an unchanged entry is a no-op."""
    entry = ChronologyEntry(
        coach="Jenny", student="Huda", date=date(2024, 10, 1), week_number=4, external_id="rec-1"
    )

    assert await repo.append(entry) is True
    assert await repo.append(entry) is False
    assert await repo.count() == 1


@pytest.mark.asyncio
async def test_entries_without_id_dedupe_on_date_and_week(repo: ChronologyRepository):
    entry = ChronologyEntry(coach="Jenny", student="Huda", date=date(2024, 10, 1), week_number=4)

    await repo.append(entry)
    await repo.append(entry)
    await repo.append(entry.model_copy(update={"week_number": 5}))

    assert await repo.count() == 2


@pytest.mark.asyncio
async def test_backs_week_inference(repo: ChronologyRepository, roster):
    """The repository works as the week inferencer's chronology store."""
    await repo.append(
        ChronologyEntry(coach="Jenny", student="Huda", date=date(2024, 10, 1), week_number=4)
    )
    inferencer = WeekInferencer(roster, repo)
    event = RawRecordingEvent(external_id="rec-2", topic="Jenny and Huda")

    result = await inferencer.infer_week(event, "Jenny", "Huda", date(2024, 10, 15))

    assert result.method == WeekMethod.CHRONOLOGY
    assert result.week_number == 6


@pytest.mark.asyncio
async def test_reresolved_recording_replaces_week(repo: ChronologyRepository):
    """A recording resolved again keeps one row carrying the newer week."""
    entry = ChronologyEntry(
        coach="Jenny", student="Huda", date=date(2024, 10, 15), week_number=7, external_id="rec-2"
    )
    await repo.append(entry)

    assert await repo.append(entry.model_copy(update={"week_number": 6})) is True

    entries = await repo.entries("Jenny", "Huda")
    assert [(e.week_number, e.external_id) for e in entries] == [(6, "rec-2")]
    assert await repo.count() == 1


@pytest.mark.asyncio
async def test_transient_database_errors_are_retried():
    db = AsyncMock()
    db.execute.side_effect = [
        ConnectionError("turso unreachable"),
        SimpleNamespace(rows=[("Jenny", "Huda", "2024-10-01", 4, "rec-1")]),
    ]
    repo = ChronologyRepository(db, retry=RetryPolicy(attempts=2, min_wait=0, max_wait=0))

    entries = await repo.entries("Jenny", "Huda")

    assert [e.week_number for e in entries] == [4]
    assert db.execute.await_count == 2
