"""Candidate values and resolved identities.

Defines the intermediate candidates proposed by each source, the name and
week resolutions, and the final ResolvedIdentity for one recording.
"""

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

UNKNOWN = "unknown"

# Staff-hosted sessions without a student; TRIVIAL ones are also short
MISC_SESSION = "MISC"
TRIVIAL_SESSION = "TRIVIAL"


class CandidateField(str, Enum):
    """Identity field a candidate proposes a value for."""

    COACH = "coach"
    STUDENT = "student"
    SESSION_TYPE = "session_type"
    DATE = "date"
    WEEK = "week"


class CandidateSource(str, Enum):
    """Where a candidate came from. Declaration order is tie-break priority."""

    FILES = "files"
    PARTICIPANTS = "participants"
    TOPIC = "topic"
    HOST = "host"


SOURCE_WEIGHTS: dict[CandidateSource, float] = {
    CandidateSource.FILES: 0.4,
    CandidateSource.PARTICIPANTS: 0.3,
    CandidateSource.TOPIC: 0.2,
    CandidateSource.HOST: 0.1,
}

SOURCE_PRIORITY: dict[CandidateSource, int] = {
    source: index for index, source in enumerate(CandidateSource)
}

# Weights for the overall confidence mean
FIELD_WEIGHTS: dict[str, float] = {
    "coach": 0.3,
    "student": 0.3,
    "week": 0.2,
    "session_type": 0.1,
    "date": 0.1,
}


class Candidate(BaseModel):
    """One proposed value for one field from one source."""

    model_config = ConfigDict(frozen=True)

    field: CandidateField
    value: str = Field(description="Raw proposed value (ISO string for dates)")
    source: CandidateSource
    confidence: int = Field(ge=0, le=100, description="Extraction confidence")

    @property
    def weight(self) -> float:
        return SOURCE_WEIGHTS[self.source]


class NameMatchMethod(str, Enum):
    """How a raw name was mapped to a canonical one."""

    EXACT = "exact"
    PARTIAL = "partial"
    NO_MATCH = "no_match"
    EMPTY = "empty"


class NameResolution(BaseModel):
    """Result of resolving one raw name."""

    model_config = ConfigDict(frozen=True)

    raw_name: str
    canonical_name: str
    confidence: int = Field(ge=0, le=100)
    method: NameMatchMethod


class WeekMethod(str, Enum):
    """Week inference methods, in the order they are tried."""

    FILENAME = "filename"
    TIMELINE = "timeline"
    CHRONOLOGY = "chronology"
    ACADEMIC_CALENDAR = "academic_calendar"
    TRANSCRIPT = "transcript"
    SEQUENTIAL = "sequential"


class WeekResult(BaseModel):
    """Week number for a session and how it was found."""

    model_config = ConfigDict(frozen=True)

    week_number: int = Field(ge=1)
    confidence: int = Field(ge=0, le=100)
    method: WeekMethod
    evidence: str = ""


class ResolvedIdentity(BaseModel):
    """Canonical identity of one recording with per-field confidence.

    ``overall_confidence`` is always derived from ``per_field_confidence``
    and the ambiguity flag; it cannot be set directly.
    """

    model_config = ConfigDict(frozen=True)

    coach: str = UNKNOWN
    student: str = UNKNOWN
    session_type: str = UNKNOWN
    week_number: int = Field(default=1, ge=1)
    week_method: WeekMethod = WeekMethod.SEQUENTIAL
    date: dt.date | None = None
    per_field_confidence: dict[str, int] = Field(default_factory=dict)
    unambiguous: bool = Field(
        default=False,
        description="Exactly one distinct coach and one distinct student found",
    )
    evidence: tuple[str, ...] = Field(default_factory=tuple)

    @property
    def unknown_fields(self) -> list[str]:
        unknown = [
            name
            for name in ("coach", "student", "session_type")
            if getattr(self, name) == UNKNOWN
        ]
        if self.date is None:
            unknown.append("date")
        return unknown

    @computed_field  # type: ignore[prop-decorator]
    @property
    def overall_confidence(self) -> int:
        """Weighted mean of known field confidences, boosted or penalized.

        x1.1 (capped at 100) when coach and student were unambiguous,
        then x0.9 for every unknown field.
        """
        weighted = 0.0
        total = 0.0
        for name, weight in FIELD_WEIGHTS.items():
            confidence = self.per_field_confidence.get(name, 0)
            if confidence > 0:
                weighted += confidence * weight
                total += weight
        if total == 0:
            return 0

        score = weighted / total
        if self.unambiguous:
            score = min(score * 1.1, 100.0)
        score *= 0.9 ** len(self.unknown_fields)
        return int(score + 0.5)

    @property
    def standardized_name(self) -> str:
        """Human-readable session name, e.g. ``Jenny_Huda_Week5_2024-09-15``.

        Staff sessions are prefixed with their type (``MISC_Week2_...``);
        TRIVIAL names carry no week.
        """
        parts: list[str] = []
        if self.session_type in (MISC_SESSION, TRIVIAL_SESSION):
            parts.append(self.session_type)
            if self.coach != UNKNOWN:
                parts.append(self.coach)
        elif self.coach != UNKNOWN and self.student != UNKNOWN:
            parts.extend([self.coach, self.student])
        elif self.coach != UNKNOWN:
            parts.extend([self.coach, "Admin"])
        else:
            parts.append("Unknown")
        if self.session_type != TRIVIAL_SESSION:
            parts.append(f"Week{self.week_number}")
        if self.date is not None:
            parts.append(self.date.isoformat())
        return "_".join(p.replace(" ", "") for p in parts)
