"""Tests for week-of-program inference."""

from datetime import date

import pytest

from coach_ledger.identity.chronology import InMemoryChronologyStore
from coach_ledger.identity.schemas import RosterConfig
from coach_ledger.identity.week_inferencer import (
    FixedWeekInferencer,
    WeekInferencer,
    find_week_number,
)
from coach_ledger.models.identity import UNKNOWN, WeekMethod
from coach_ledger.models.ledger import ChronologyEntry
from coach_ledger.models.recording import RawRecordingEvent, SourceFile


def _event(topic: str = "", files: tuple[str, ...] = ()) -> RawRecordingEvent:
    return RawRecordingEvent(
        external_id="rec-1",
        topic=topic,
        source_files=tuple(SourceFile(name=name) for name in files),
    )


class TestFindWeekNumber:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Coaching_Wk05_video.mp4", 5),
            ("Week #12 review", 12),
            ("Session #3", 3),
            ("Jenny_Huda_W4_notes", 4),
            ("Class 2 recording", 2),
            ("Jenny_7_2024-09-15", 7),
            ("6-weeks in", 6),
        ],
    )
    def test_markers(self, text: str, expected: int):
        found = find_week_number(text)

        assert found is not None
        assert found[0] == expected

    def test_program_length_is_not_a_week(self):
        assert find_week_number("12 week program kickoff") is None

    def test_out_of_range_is_ignored(self):
        assert find_week_number("Week 150") is None
        assert find_week_number("Week 0") is None

    def test_empty(self):
        assert find_week_number(None) is None
        assert find_week_number("") is None


class TestMethodOrder:
    """Methods run in fixed order and the first success wins."""

    @pytest.mark.asyncio
    async def test_filename_beats_timeline(self, week_inferencer: WeekInferencer):
        """Wk05 in a file name wins over a timeline that says week 3."""
        result = await week_inferencer.infer_week(
            _event(files=("Coaching_Wk05_video.mp4",)),
            "Rachel",
            "Maya",
            date(2024, 9, 16),
        )

        assert result.week_number == 5
        assert result.method == WeekMethod.FILENAME
        assert result.confidence == 100

    @pytest.mark.asyncio
    async def test_topic_counts_as_filename_method(self, week_inferencer: WeekInferencer):
        result = await week_inferencer.infer_week(
            _event(topic="Rachel <> Maya | Week 8"), "Rachel", "Maya", None
        )

        assert result.week_number == 8
        assert result.method == WeekMethod.FILENAME

    @pytest.mark.asyncio
    async def test_timeline(self, week_inferencer: WeekInferencer):
        result = await week_inferencer.infer_week(
            _event(topic="Rachel <> Maya"), "Rachel", "Maya", date(2024, 9, 16)
        )

        assert result.week_number == 3
        assert result.method == WeekMethod.TIMELINE
        assert result.confidence == 95

    @pytest.mark.asyncio
    async def test_timeline_out_of_range_falls_through(
        self, week_inferencer: WeekInferencer
    ):
        """Past the end of a 12 week program the academic calendar decides."""
        result = await week_inferencer.infer_week(
            _event(), "Rachel", "Maya", date(2025, 1, 10)
        )

        assert result.method == WeekMethod.ACADEMIC_CALENDAR
        assert result.week_number == 19

    @pytest.mark.asyncio
    async def test_chronology_adds_elapsed_weeks(
        self,
        week_inferencer: WeekInferencer,
        chronology: InMemoryChronologyStore,
    ):
        """Week N on day D makes day D+14 week N+2."""
        await chronology.append(
            ChronologyEntry(
                coach="Jenny", student="Huda", date=date(2024, 10, 1), week_number=4
            )
        )

        result = await week_inferencer.infer_week(
            _event(), "Jenny", "Huda", date(2024, 10, 15)
        )

        assert result.week_number == 6
        assert result.method == WeekMethod.CHRONOLOGY
        assert result.confidence == 85

    @pytest.mark.asyncio
    async def test_chronology_rounds_to_nearest_week(
        self,
        week_inferencer: WeekInferencer,
        chronology: InMemoryChronologyStore,
    ):
        await chronology.append(
            ChronologyEntry(
                coach="Jenny", student="Huda", date=date(2024, 10, 1), week_number=2
            )
        )

        ten_days = await week_inferencer.infer_week(
            _event(), "Jenny", "Huda", date(2024, 10, 11)
        )
        eleven_days = await week_inferencer.infer_week(
            _event(), "Jenny", "Huda", date(2024, 10, 12)
        )

        assert ten_days.week_number == 3
        assert eleven_days.week_number == 4

    @pytest.mark.asyncio
    async def test_chronology_ignores_later_entries(
        self,
        week_inferencer: WeekInferencer,
        chronology: InMemoryChronologyStore,
    ):
        await chronology.append(
            ChronologyEntry(
                coach="Jenny", student="Huda", date=date(2024, 11, 1), week_number=9
            )
        )

        result = await week_inferencer.infer_week(
            _event(), "Jenny", "Huda", date(2024, 10, 7)
        )

        assert result.method == WeekMethod.ACADEMIC_CALENDAR

    @pytest.mark.asyncio
    async def test_academic_calendar(self, week_inferencer: WeekInferencer):
        result = await week_inferencer.infer_week(
            _event(), "Jenny", "Huda", date(2024, 10, 7)
        )

        assert result.week_number == 6
        assert result.method == WeekMethod.ACADEMIC_CALENDAR
        assert result.confidence == 70

    @pytest.mark.asyncio
    async def test_academic_calendar_before_september(self, roster: RosterConfig):
        inferencer = WeekInferencer(roster, InMemoryChronologyStore())

        result = await inferencer.infer_week(_event(), "Jenny", "Huda", date(2025, 3, 3))

        # 2024-09-01 to 2025-03-03 is 183 days
        assert result.week_number == 27

    @pytest.mark.asyncio
    async def test_custom_academic_year_start(self, roster: RosterConfig):
        inferencer = WeekInferencer(
            roster, InMemoryChronologyStore(), academic_year_start_month=1
        )

        result = await inferencer.infer_week(_event(), "Jenny", "Huda", date(2024, 1, 15))

        assert result.week_number == 3

    @pytest.mark.asyncio
    async def test_transcript(self, week_inferencer: WeekInferencer):
        result = await week_inferencer.infer_week(
            _event(),
            UNKNOWN,
            UNKNOWN,
            None,
            transcript_text="Welcome back, this is week 7 already.",
        )

        assert result.week_number == 7
        assert result.method == WeekMethod.TRANSCRIPT
        assert result.confidence == 90

    @pytest.mark.asyncio
    async def test_sequential_fallback(self, week_inferencer: WeekInferencer):
        result = await week_inferencer.infer_week(
            _event(topic="zzz"), UNKNOWN, UNKNOWN, date(2024, 10, 7)
        )

        assert result.week_number == 1
        assert result.method == WeekMethod.SEQUENTIAL
        assert result.confidence == 50

    @pytest.mark.asyncio
    async def test_unknown_pair_skips_date_methods(self, week_inferencer: WeekInferencer):
        result = await week_inferencer.infer_week(
            _event(), "Jenny", UNKNOWN, date(2024, 10, 7)
        )

        assert result.method == WeekMethod.SEQUENTIAL


class TestMethodFailure:
    @pytest.mark.asyncio
    async def test_failing_method_is_skipped(self, roster: RosterConfig):
        """A method that raises is logged and the next one runs."""

        class BrokenStore(InMemoryChronologyStore):
            async def entries(self, coach, student):
                raise RuntimeError("store offline")

        inferencer = WeekInferencer(roster, BrokenStore())

        result = await inferencer.infer_week(_event(), "Jenny", "Huda", date(2024, 10, 7))

        assert result.method == WeekMethod.ACADEMIC_CALENDAR


class TestUpdateChronology:
    @pytest.mark.asyncio
    async def test_appends_entry(
        self,
        week_inferencer: WeekInferencer,
        chronology: InMemoryChronologyStore,
    ):
        appended = await week_inferencer.update_chronology(
            "Jenny", "Huda", date(2024, 10, 1), 4, external_id="rec-1"
        )

        assert appended is True
        entries = await chronology.entries("jenny", "HUDA")
        assert [e.week_number for e in entries] == [4]

    @pytest.mark.asyncio
    async def test_same_external_id_is_noop(self, week_inferencer: WeekInferencer):
        await week_inferencer.update_chronology(
            "Jenny", "Huda", date(2024, 10, 1), 4, external_id="rec-1"
        )

        again = await week_inferencer.update_chronology(
            "Jenny", "Huda", date(2024, 10, 1), 4, external_id="rec-1"
        )

        assert again is False

    @pytest.mark.asyncio
    async def test_reresolved_recording_replaces_its_week(
        self,
        week_inferencer: WeekInferencer,
        chronology: InMemoryChronologyStore,
    ):
        await week_inferencer.update_chronology(
            "Jenny", "Huda", date(2024, 10, 15), 7, external_id="rec-2"
        )

        changed = await week_inferencer.update_chronology(
            "Jenny", "Huda", date(2024, 10, 15), 6, external_id="rec-2"
        )

        assert changed is True
        entries = await chronology.entries("Jenny", "Huda")
        assert [e.week_number for e in entries] == [6]

    @pytest.mark.asyncio
    async def test_unknown_pair_or_missing_date_is_noop(
        self, week_inferencer: WeekInferencer
    ):
        assert not await week_inferencer.update_chronology(
            UNKNOWN, "Huda", date(2024, 10, 1), 4
        )
        assert not await week_inferencer.update_chronology("Jenny", "Huda", None, 4)


class TestFixedWeekInferencer:
    @pytest.mark.asyncio
    async def test_always_week_one(self):
        inferencer = FixedWeekInferencer()

        result = await inferencer.infer_week(
            _event(files=("Coaching_Wk05_video.mp4",)), "Jenny", "Huda", date(2024, 10, 7)
        )

        assert result.week_number == 1
        assert result.method == WeekMethod.SEQUENTIAL
        assert not await inferencer.update_chronology(
            "Jenny", "Huda", date(2024, 10, 7), 1
        )
