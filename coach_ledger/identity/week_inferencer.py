"""Week-of-program inference.

Methods are tried strictly in this order and the first success wins:

1. filename: week marker in a source file name or the topic (100)
2. timeline: program start date and length for the pair (95)
3. chronology: last known week for the pair plus elapsed weeks (85)
4. academic_calendar: weeks since the academic year started (70)
5. transcript: week marker in the transcript text (90)

If every method fails the session is assigned week 1 at 50 (sequential).
"""

import datetime as dt
import math
import re
from typing import Protocol

import structlog

from coach_ledger.identity.chronology import ChronologyStore
from coach_ledger.identity.schemas import RosterConfig
from coach_ledger.models.identity import UNKNOWN, WeekMethod, WeekResult
from coach_ledger.models.ledger import ChronologyEntry
from coach_ledger.models.recording import RawRecordingEvent

logger = structlog.get_logger()

MAX_WEEK = 100
MAX_ACADEMIC_WEEK = 52

METHOD_CONFIDENCE: dict[WeekMethod, int] = {
    WeekMethod.FILENAME: 100,
    WeekMethod.TIMELINE: 95,
    WeekMethod.CHRONOLOGY: 85,
    WeekMethod.ACADEMIC_CALENDAR: 70,
    WeekMethod.TRANSCRIPT: 90,
    WeekMethod.SEQUENTIAL: 50,
}

WEEK_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"[Ww]k\s*#?\s*(\d+)"),
    re.compile(r"[Ww]eek\s*#?\s*(\d+)"),
    re.compile(r"Session\s*#\s*(\d+)", re.IGNORECASE),
    re.compile(r"_W(\d+)_"),
    re.compile(r"\bW(\d+)\b"),
    re.compile(r"Class\s*(\d+)", re.IGNORECASE),
    re.compile(r"_(\d+)_\d{4}-\d{2}-\d{2}"),
    # "12 week program" is a program length, not a week marker
    re.compile(r"(\d+)[\s-]*weeks?\b(?![\s-]*program)", re.IGNORECASE),
]


def find_week_number(text: str | None) -> tuple[int, str] | None:
    """Find the first valid week marker in a string.

    Args:
        text: File name, topic or transcript text

    Returns:
        (week number, matched text) or None when no marker is in [1, 100]
    """
    if not text:
        return None
    for pattern in WEEK_PATTERNS:
        for match in pattern.finditer(text):
            week = int(match.group(1))
            if 1 <= week <= MAX_WEEK:
                return week, match.group(0)
    return None


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class WeekInferencerStrategy(Protocol):
    """Interface shared by week inferencers."""

    async def infer_week(
        self,
        event: RawRecordingEvent,
        coach: str,
        student: str,
        session_date: dt.date | None,
        transcript_text: str | None = None,
    ) -> WeekResult: ...

    async def update_chronology(
        self,
        coach: str,
        student: str,
        session_date: dt.date | None,
        week_number: int,
        external_id: str | None = None,
    ) -> bool: ...


def sequential_week() -> WeekResult:
    return WeekResult(
        week_number=1,
        confidence=METHOD_CONFIDENCE[WeekMethod.SEQUENTIAL],
        method=WeekMethod.SEQUENTIAL,
        evidence="Week 1 assigned as default",
    )


def _known(*names: str) -> bool:
    return all(name and name != UNKNOWN for name in names)


class WeekInferencer:
    """Infers the week number with five ordered methods.

    Successful resolutions are appended to the pair's chronology through
    ``update_chronology`` so later sessions can build on them. Callers must
    serialize infer/update for one pair.
    """

    def __init__(
        self,
        roster: RosterConfig,
        chronology: ChronologyStore,
        academic_year_start_month: int = 9,
    ):
        """Initialize inferencer.

        Args:
            roster: Source of program timelines
            chronology: Store of past resolutions per pair
            academic_year_start_month: Month the academic year starts on
        """
        self._roster = roster
        self._chronology = chronology
        self._academic_month = academic_year_start_month

    async def infer_week(
        self,
        event: RawRecordingEvent,
        coach: str,
        student: str,
        session_date: dt.date | None,
        transcript_text: str | None = None,
    ) -> WeekResult:
        """Infer the week for a session.

        Args:
            event: Recording being resolved (files and topic are scanned)
            coach: Canonical coach or "unknown"
            student: Canonical student or "unknown"
            session_date: Session date; methods 2-4 need it
            transcript_text: Transcript text if a provider supplied one

        Returns:
            WeekResult from the first method that succeeds
        """
        methods = [
            (WeekMethod.FILENAME, lambda: self._from_filename(event)),
            (WeekMethod.TIMELINE, lambda: self._from_timeline(coach, student, session_date)),
            (WeekMethod.CHRONOLOGY, lambda: self._from_chronology(coach, student, session_date)),
            (
                WeekMethod.ACADEMIC_CALENDAR,
                lambda: self._from_academic_calendar(coach, student, session_date),
            ),
            (WeekMethod.TRANSCRIPT, lambda: self._from_transcript(transcript_text)),
        ]

        for method, attempt in methods:
            try:
                result = await attempt()
            except Exception as e:
                logger.warning(
                    "Week inference method failed",
                    method=method.value,
                    external_id=event.external_id,
                    error=str(e),
                )
                continue
            if result is not None:
                logger.debug(
                    "Week inferred",
                    method=result.method.value,
                    week=result.week_number,
                    external_id=event.external_id,
                )
                return result

        logger.debug("Week fell back to sequential", external_id=event.external_id)
        return sequential_week()

    async def _from_filename(self, event: RawRecordingEvent) -> WeekResult | None:
        texts = [f.name for f in event.source_files] + [event.topic]
        for text in texts:
            found = find_week_number(text)
            if found:
                week, matched = found
                return WeekResult(
                    week_number=week,
                    confidence=METHOD_CONFIDENCE[WeekMethod.FILENAME],
                    method=WeekMethod.FILENAME,
                    evidence=f"Week {week} from {matched!r} in {text!r}",
                )
        return None

    async def _from_timeline(
        self, coach: str, student: str, session_date: dt.date | None
    ) -> WeekResult | None:
        if session_date is None or not _known(coach, student):
            return None
        program = self._roster.program_for(coach, student)
        if program is None:
            return None

        week = (session_date - program.start_date).days // 7 + 1
        if 1 <= week <= program.total_weeks:
            return WeekResult(
                week_number=week,
                confidence=METHOD_CONFIDENCE[WeekMethod.TIMELINE],
                method=WeekMethod.TIMELINE,
                evidence=(
                    f"Week {week} of {program.total_weeks} from program start "
                    f"{program.start_date.isoformat()}"
                ),
            )
        return None

    async def _from_chronology(
        self, coach: str, student: str, session_date: dt.date | None
    ) -> WeekResult | None:
        if session_date is None or not _known(coach, student):
            return None
        previous = [
            e
            for e in await self._chronology.entries(coach, student)
            if e.date < session_date
        ]
        if not previous:
            return None

        last = max(previous, key=lambda e: e.date)
        days = (session_date - last.date).days
        week = last.week_number + round_half_up(days / 7)
        if 1 <= week <= MAX_WEEK:
            return WeekResult(
                week_number=week,
                confidence=METHOD_CONFIDENCE[WeekMethod.CHRONOLOGY],
                method=WeekMethod.CHRONOLOGY,
                evidence=(
                    f"Week {week} from week {last.week_number} on "
                    f"{last.date.isoformat()} ({days} days earlier)"
                ),
            )
        return None

    async def _from_academic_calendar(
        self, coach: str, student: str, session_date: dt.date | None
    ) -> WeekResult | None:
        if session_date is None or not _known(coach, student):
            return None
        year_start = dt.date(session_date.year, self._academic_month, 1)
        if session_date < year_start:
            year_start = dt.date(session_date.year - 1, self._academic_month, 1)

        week = (session_date - year_start).days // 7 + 1
        if 1 <= week <= MAX_ACADEMIC_WEEK:
            return WeekResult(
                week_number=week,
                confidence=METHOD_CONFIDENCE[WeekMethod.ACADEMIC_CALENDAR],
                method=WeekMethod.ACADEMIC_CALENDAR,
                evidence=f"Week {week} of academic year from {year_start.isoformat()}",
            )
        return None

    async def _from_transcript(self, transcript_text: str | None) -> WeekResult | None:
        found = find_week_number(transcript_text)
        if not found:
            return None
        week, matched = found
        return WeekResult(
            week_number=week,
            confidence=METHOD_CONFIDENCE[WeekMethod.TRANSCRIPT],
            method=WeekMethod.TRANSCRIPT,
            evidence=f"Week {week} mentioned in transcript ({matched!r})",
        )

    async def update_chronology(
        self,
        coach: str,
        student: str,
        session_date: dt.date | None,
        week_number: int,
        external_id: str | None = None,
    ) -> bool:
        """Record a resolved week for the pair.

        A recording already in the chronology has its entry replaced, so a
        reprocessed session never leaves a stale week behind. Updates for an
        unknown coach or student or a session without a date are no-ops.

        Returns:
            True if the chronology changed
        """
        if session_date is None or not _known(coach, student):
            return False
        appended = await self._chronology.append(
            ChronologyEntry(
                coach=coach,
                student=student,
                date=session_date,
                week_number=week_number,
                external_id=external_id,
            )
        )
        if appended:
            logger.debug(
                "Chronology updated",
                coach=coach,
                student=student,
                date=session_date.isoformat(),
                week=week_number,
            )
        return appended


class FixedWeekInferencer:
    """Null inferencer: every session is week 1 and nothing is remembered."""

    async def infer_week(
        self,
        event: RawRecordingEvent,
        coach: str,
        student: str,
        session_date: dt.date | None,
        transcript_text: str | None = None,
    ) -> WeekResult:
        return sequential_week()

    async def update_chronology(
        self,
        coach: str,
        student: str,
        session_date: dt.date | None,
        week_number: int,
        external_id: str | None = None,
    ) -> bool:
        return False
