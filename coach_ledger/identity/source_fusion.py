"""Candidate extraction from the sources of one recording.

Each source proposes candidates independently:
- files (weight 0.4): name/week file patterns, known-name tokens, dates
- participants (0.3): known coaches, then the first other participant
- topic (0.2): ordered topic patterns and embedded dates
- host (0.1): host email or name matching a coach

Malformed input never raises; a source that cannot parse simply yields
no candidates.
"""

import re
from dataclasses import dataclass

import structlog

from coach_ledger.identity.date_normalizer import find_dates
from coach_ledger.identity.name_resolver import NameResolverStrategy
from coach_ledger.identity.week_inferencer import find_week_number
from coach_ledger.models.identity import Candidate, CandidateField, CandidateSource
from coach_ledger.models.recording import RawRecordingEvent

logger = structlog.get_logger()

NAME = r"([A-Za-z]+(?:\s+[A-Za-z]+)?)"
WORD = r"([A-Za-z]+)"


@dataclass(frozen=True)
class TopicPattern:
    """A topic regex and what its groups mean.

    ``roles`` is "fixed" when group order is (coach, student), "reversed"
    for (student, coach) and "ambiguous" when the resolver must decide.
    """

    description: str
    regex: re.Pattern[str]
    roles: str
    confidence: int
    week_group: int | None = None
    session_type: str | None = None
    session_type_group: int | None = None


TOPIC_PATTERNS: list[TopicPattern] = [
    TopicPattern(
        "Coach <> Student | Wk #N",
        re.compile(rf"^{WORD}\s*<>\s*{WORD}\s*\|\s*(?:Wk|Week)\s*#?\s*(\d+)", re.I),
        roles="fixed",
        confidence=95,
        week_group=3,
    ),
    TopicPattern(
        "Coach <> Student Game Plan",
        re.compile(rf"^{WORD}\s*<>\s*{WORD}\s*Game\s*Plan", re.I),
        roles="fixed",
        confidence=90,
        session_type="Game Plan",
    ),
    TopicPattern(
        "Coach <> Student",
        re.compile(rf"^{WORD}\s*<>\s*{WORD}", re.I),
        roles="fixed",
        confidence=85,
    ),
    TopicPattern(
        "Weekly Check-in: Student & Coach X",
        re.compile(rf"^Weekly\s+Check-?in:?\s*{NAME}\s*&\s*Coach\s+{NAME}", re.I),
        roles="reversed",
        confidence=90,
    ),
    TopicPattern(
        "Coach x Student",
        re.compile(rf"^(?:Coach\s+)?{WORD}\s+[x×]\s+{WORD}\b", re.I),
        roles="fixed",
        confidence=85,
    ),
    TopicPattern(
        "A and B",
        re.compile(rf"^{NAME}\s+and\s+{WORD}\b", re.I),
        roles="ambiguous",
        confidence=80,
    ),
    TopicPattern(
        "A & B",
        re.compile(rf"^{NAME}\s*&\s*{WORD}\b", re.I),
        roles="ambiguous",
        confidence=75,
    ),
    TopicPattern(
        "A with B",
        re.compile(rf"^{NAME}\s+with\s+{WORD}\b", re.I),
        roles="ambiguous",
        confidence=75,
    ),
    TopicPattern(
        "A / B",
        re.compile(rf"^{WORD}\s*/\s*{WORD}\b", re.I),
        roles="ambiguous",
        confidence=70,
    ),
    TopicPattern(
        "Activity - Student",
        re.compile(
            rf"^(Essay|College|SAT|Application)\s*(?:Review|Prep|Planning|Session)?"
            rf"\s*[-–]\s*{NAME}",
            re.I,
        ),
        roles="student_only",
        confidence=85,
        session_type_group=1,
    ),
]

SESSION_TYPE_KEYWORDS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"game[\s_-]*plan", re.I), "Game Plan"),
    (re.compile(r"\bSAT\b"), "SAT"),
    (re.compile(r"essay", re.I), "Essay"),
    (re.compile(r"college", re.I), "College"),
    (re.compile(r"application", re.I), "Application"),
]

SESSION_TYPE_NAMES = {
    "game plan": "Game Plan",
    "sat": "SAT",
    "essay": "Essay",
    "college": "College",
    "application": "Application",
}

FILE_NAME_PATTERN = re.compile(r"([A-Za-z]+)_([A-Za-z]+)_(?:Wk|Week)\s*(\d+)")

# Capitalized tokens in file names that are never people
FILE_STOPWORDS = {
    "admin",
    "audio",
    "chat",
    "class",
    "coaching",
    "gallery",
    "game",
    "gmt",
    "meeting",
    "misc",
    "notes",
    "plan",
    "recording",
    "screen",
    "session",
    "shared",
    "speaker",
    "transcript",
    "trivial",
    "video",
    "view",
    "week",
    "wk",
    "zoom",
}

FILE_PATTERN_CONFIDENCE = 80
FILE_TOKEN_CONFIDENCE = 75
FILE_DATE_CONFIDENCE = 90
FILE_WEEK_CONFIDENCE = 80
FILE_SESSION_TYPE_CONFIDENCE = 75
PARTICIPANT_COACH_CONFIDENCE = 90
PARTICIPANT_STUDENT_CONFIDENCE = 85
TOPIC_DATE_CONFIDENCE = 85
TOPIC_SESSION_TYPE_CONFIDENCE = 80
HOST_EMAIL_CONFIDENCE = 100


class SourceFusionExtractor:
    """Proposes coach/student/session type/date/week candidates."""

    def __init__(
        self,
        resolver: NameResolverStrategy,
        staff_email_domains: list[str] | None = None,
    ):
        """Initialize extractor.

        Args:
            resolver: Used to recognize known coaches and students
            staff_email_domains: Email domains of staff who are never students
        """
        self._resolver = resolver
        self._staff_domains = [
            d.strip().lower().lstrip("@") for d in (staff_email_domains or []) if d.strip()
        ]

    def extract(self, event: RawRecordingEvent) -> list[Candidate]:
        """Collect candidates from every source in priority order.

        Args:
            event: Recording to extract from

        Returns:
            Candidates from files, participants, topic, then host
        """
        candidates: list[Candidate] = []
        for source, extractor in (
            (CandidateSource.FILES, self._from_files),
            (CandidateSource.PARTICIPANTS, self._from_participants),
            (CandidateSource.TOPIC, self._from_topic),
            (CandidateSource.HOST, self._from_host),
        ):
            try:
                candidates.extend(extractor(event))
            except Exception as e:
                logger.warning(
                    "Candidate extraction failed",
                    source=source.value,
                    external_id=event.external_id,
                    error=str(e),
                )
        return candidates

    def _from_files(self, event: RawRecordingEvent) -> list[Candidate]:
        found: list[Candidate] = []
        seen: set[tuple[CandidateField, str]] = set()

        def add(field: CandidateField, value: str, confidence: int) -> None:
            key = (field, value.lower())
            if key not in seen:
                seen.add(key)
                found.append(
                    Candidate(
                        field=field,
                        value=value,
                        source=CandidateSource.FILES,
                        confidence=confidence,
                    )
                )

        for source_file in event.source_files:
            stem = source_file.stem

            match = FILE_NAME_PATTERN.search(stem)
            if match:
                coach, student = self._assign_roles(match.group(1), match.group(2))
                if coach:
                    add(CandidateField.COACH, coach, FILE_PATTERN_CONFIDENCE)
                if student:
                    add(CandidateField.STUDENT, student, FILE_PATTERN_CONFIDENCE)

            for token in re.findall(r"[A-Z][a-z]+", stem):
                if token.lower() in FILE_STOPWORDS:
                    continue
                if self._resolver.is_coach(token):
                    add(CandidateField.COACH, token, FILE_TOKEN_CONFIDENCE)
                elif self._resolver.is_student(token):
                    add(CandidateField.STUDENT, token, FILE_TOKEN_CONFIDENCE)

            for found_date in find_dates(stem):
                add(CandidateField.DATE, found_date.isoformat(), FILE_DATE_CONFIDENCE)

            week = find_week_number(stem)
            if week:
                add(CandidateField.WEEK, str(week[0]), FILE_WEEK_CONFIDENCE)

            session_type = _keyword_session_type(stem)
            if session_type:
                add(CandidateField.SESSION_TYPE, session_type, FILE_SESSION_TYPE_CONFIDENCE)

        return found

    def _from_participants(self, event: RawRecordingEvent) -> list[Candidate]:
        found: list[Candidate] = []
        student_found = False
        for participant in event.participants:
            coach = self._resolver.coach_for_email(participant.email)
            if coach is None and self._resolver.is_coach(participant.name):
                coach = participant.name
            if coach:
                found.append(
                    Candidate(
                        field=CandidateField.COACH,
                        value=coach,
                        source=CandidateSource.PARTICIPANTS,
                        confidence=PARTICIPANT_COACH_CONFIDENCE,
                    )
                )
                continue

            if self._is_staff(participant.email) or student_found:
                continue
            name = participant.name or (participant.email or "").split("@")[0]
            if not name.strip():
                continue
            found.append(
                Candidate(
                    field=CandidateField.STUDENT,
                    value=name,
                    source=CandidateSource.PARTICIPANTS,
                    confidence=PARTICIPANT_STUDENT_CONFIDENCE,
                )
            )
            student_found = True
        return found

    def _from_topic(self, event: RawRecordingEvent) -> list[Candidate]:
        topic = " ".join(event.topic.split())
        if not topic:
            return []
        found: list[Candidate] = []

        def add(field: CandidateField, value: str, confidence: int) -> None:
            found.append(
                Candidate(
                    field=field,
                    value=value,
                    source=CandidateSource.TOPIC,
                    confidence=confidence,
                )
            )

        for pattern in TOPIC_PATTERNS:
            match = pattern.regex.search(topic)
            if not match:
                continue

            if pattern.roles == "student_only":
                coach, student = None, match.group(2)
            elif pattern.roles == "reversed":
                coach, student = match.group(2), match.group(1)
            elif pattern.roles == "fixed":
                coach, student = match.group(1), match.group(2)
            else:
                coach, student = self._assign_roles(
                    match.group(1), match.group(2), first_is_coach=False
                )

            if coach:
                add(CandidateField.COACH, coach, pattern.confidence)
            if student:
                add(CandidateField.STUDENT, student, pattern.confidence)
            if pattern.week_group:
                add(CandidateField.WEEK, match.group(pattern.week_group), pattern.confidence)
            if pattern.session_type:
                add(CandidateField.SESSION_TYPE, pattern.session_type, pattern.confidence)
            elif pattern.session_type_group:
                raw_type = match.group(pattern.session_type_group).lower()
                add(
                    CandidateField.SESSION_TYPE,
                    SESSION_TYPE_NAMES.get(raw_type, raw_type.title()),
                    pattern.confidence,
                )
            logger.debug(
                "Topic pattern matched",
                pattern=pattern.description,
                external_id=event.external_id,
            )
            break

        if not any(c.field == CandidateField.SESSION_TYPE for c in found):
            session_type = _keyword_session_type(topic)
            if session_type:
                add(CandidateField.SESSION_TYPE, session_type, TOPIC_SESSION_TYPE_CONFIDENCE)

        for found_date in find_dates(topic):
            add(CandidateField.DATE, found_date.isoformat(), TOPIC_DATE_CONFIDENCE)

        return found

    def _from_host(self, event: RawRecordingEvent) -> list[Candidate]:
        host = event.host
        if not host:
            return []

        coach = self._resolver.coach_for_email(host) if "@" in host else None
        if coach:
            return [
                Candidate(
                    field=CandidateField.COACH,
                    value=coach,
                    source=CandidateSource.HOST,
                    confidence=HOST_EMAIL_CONFIDENCE,
                )
            ]

        if "@" in host:
            return []
        resolution = self._resolver.resolve(host)
        if self._resolver.is_coach(resolution.canonical_name):
            return [
                Candidate(
                    field=CandidateField.COACH,
                    value=host,
                    source=CandidateSource.HOST,
                    confidence=resolution.confidence,
                )
            ]
        return []

    def _assign_roles(
        self, first: str, second: str, first_is_coach: bool = True
    ) -> tuple[str | None, str | None]:
        """Decide which of two names is the coach.

        A known coach on exactly one side wins. Otherwise positions decide:
        ``first_is_coach`` for file names, and for topics the first name is
        the student. When both are known coaches only the first is used.
        """
        first_coach = self._resolver.is_coach(first)
        second_coach = self._resolver.is_coach(second)
        if first_coach and second_coach:
            return first, None
        if first_coach:
            return first, second
        if second_coach:
            return second, first
        return (first, second) if first_is_coach else (second, first)

    def is_staff_host(self, event: RawRecordingEvent) -> bool:
        """Whether a staff account that is not a coach hosted the recording."""
        host = event.host
        return self._is_staff(host) and not self._resolver.coach_for_email(host)

    def _is_staff(self, email: str | None) -> bool:
        if not email or "@" not in email:
            return False
        domain = email.rsplit("@", 1)[1].strip().lower()
        return domain in self._staff_domains


def _keyword_session_type(text: str) -> str | None:
    for pattern, session_type in SESSION_TYPE_KEYWORDS:
        if pattern.search(text):
            return session_type
    return None
