"""Confidence fusion: candidates and resolutions to one ResolvedIdentity.

Selection rules:
- Coach/student candidates go through the name resolver first; their
  effective confidence is min(extraction, resolver)
- Each field takes the candidate with the highest
  source_weight x effective_confidence; ties break by source priority
  (files > participants > topic > host), then extraction order
- The event start time is authoritative for the date
- Without a session type candidate the type is derived from the names,
  the host and the duration
"""

import datetime as dt
from dataclasses import dataclass, field

from coach_ledger.identity.name_resolver import NameResolverStrategy
from coach_ledger.models.identity import (
    SOURCE_PRIORITY,
    MISC_SESSION,
    TRIVIAL_SESSION,
    UNKNOWN,
    Candidate,
    CandidateField,
    NameMatchMethod,
    NameResolution,
    ResolvedIdentity,
    WeekResult,
)

START_TIME_CONFIDENCE = 100
COACHING_CONFIDENCE = 90
ADMIN_CONFIDENCE = 70
MISC_CONFIDENCE = 70

# Staff sessions shorter than this are TRIVIAL
TRIVIAL_DURATION_SECONDS = 15 * 60

NAME_FIELDS = (CandidateField.COACH, CandidateField.STUDENT)


@dataclass
class FieldChoice:
    """Selected value for one field and how it was chosen."""

    value: str
    confidence: int
    evidence: str


@dataclass
class FieldSelection:
    """Coach, student and date chosen before week inference runs."""

    coach: FieldChoice | None = None
    student: FieldChoice | None = None
    session_type: FieldChoice | None = None
    date: dt.date | None = None
    date_confidence: int = 0
    distinct_values: dict[CandidateField, set[str]] = field(default_factory=dict)

    @property
    def coach_name(self) -> str:
        return self.coach.value if self.coach else UNKNOWN

    @property
    def student_name(self) -> str:
        return self.student.value if self.student else UNKNOWN


def resolve_candidate_names(
    candidates: list[Candidate], resolver: NameResolverStrategy
) -> dict[str, NameResolution]:
    """Resolve every coach/student candidate value once.

    Returns:
        Mapping of raw candidate value to its resolution
    """
    results: dict[str, NameResolution] = {}
    for candidate in candidates:
        if candidate.field in NAME_FIELDS and candidate.value not in results:
            results[candidate.value] = resolver.resolve(candidate.value)
    return results


class ConfidenceAggregator:
    """Combines candidates, name resolutions and a week result."""

    def select(
        self,
        candidates: list[Candidate],
        name_results: dict[str, NameResolution],
        start_time: dt.datetime | None = None,
    ) -> FieldSelection:
        """Pick coach, student, session type and date.

        Args:
            candidates: Candidates in extraction order
            name_results: Resolutions for coach/student candidate values
            start_time: Event start time, authoritative for the date

        Returns:
            FieldSelection with the winning values
        """
        selection = FieldSelection()
        best: dict[CandidateField, tuple[float, int, int, FieldChoice]] = {}

        for index, candidate in enumerate(candidates):
            value = candidate.value
            confidence = candidate.confidence
            if candidate.field in NAME_FIELDS:
                resolution = name_results.get(value) or NameResolution(
                    raw_name=value,
                    canonical_name=" ".join(value.split()) or UNKNOWN,
                    confidence=50 if value.strip() else 0,
                    method=NameMatchMethod.NO_MATCH,
                )
                if resolution.method == NameMatchMethod.EMPTY:
                    continue
                value = resolution.canonical_name
                confidence = min(confidence, resolution.confidence)

            if not value or value == UNKNOWN:
                continue
            selection.distinct_values.setdefault(candidate.field, set()).add(value)

            score = candidate.weight * confidence
            # Higher score wins, then lower priority index, then earlier index
            rank = (score, -SOURCE_PRIORITY[candidate.source], -index)
            current = best.get(candidate.field)
            if current is None or rank > current[:3]:
                best[candidate.field] = (
                    *rank,
                    FieldChoice(
                        value=value,
                        confidence=confidence,
                        evidence=(
                            f"{candidate.field.value}={value} from "
                            f"{candidate.source.value} ({confidence})"
                        ),
                    ),
                )

        if CandidateField.COACH in best:
            selection.coach = best[CandidateField.COACH][3]
        if CandidateField.STUDENT in best:
            selection.student = best[CandidateField.STUDENT][3]
        if CandidateField.SESSION_TYPE in best:
            selection.session_type = best[CandidateField.SESSION_TYPE][3]

        if start_time is not None:
            selection.date = start_time.date()
            selection.date_confidence = START_TIME_CONFIDENCE
        elif CandidateField.DATE in best:
            choice = best[CandidateField.DATE][3]
            try:
                selection.date = dt.date.fromisoformat(choice.value)
                selection.date_confidence = choice.confidence
            except ValueError:
                selection.date = None

        return selection

    def aggregate(
        self,
        candidates: list[Candidate],
        name_results: dict[str, NameResolution],
        week_result: WeekResult,
        start_time: dt.datetime | None = None,
        evidence: list[str] | None = None,
        staff_host: bool = False,
        duration_seconds: int = 0,
    ) -> ResolvedIdentity:
        """Build the resolved identity for one recording.

        Args:
            candidates: Candidates in extraction order
            name_results: Resolutions for coach/student candidate values
            week_result: Output of week inference
            start_time: Event start time, authoritative for the date
            evidence: Extra notes to carry (e.g. missing event fields)
            staff_host: A staff account that is not a coach hosted the session
            duration_seconds: Session length, 0 when unknown

        Returns:
            ResolvedIdentity; equal-score conflicts are settled by tie-break
            and leave the identity marked ambiguous
        """
        selection = self.select(candidates, name_results, start_time)
        notes = list(evidence or [])

        coach = selection.coach_name
        student = selection.student_name

        if selection.session_type is not None:
            session_type = selection.session_type.value
            session_confidence = selection.session_type.confidence
            notes.append(selection.session_type.evidence)
        elif coach != UNKNOWN and student != UNKNOWN:
            session_type, session_confidence = "Coaching", COACHING_CONFIDENCE
            notes.append("session_type=Coaching derived from coach and student")
        elif student == UNKNOWN and staff_host:
            if 0 < duration_seconds < TRIVIAL_DURATION_SECONDS:
                session_type = TRIVIAL_SESSION
            else:
                session_type = MISC_SESSION
            session_confidence = MISC_CONFIDENCE
            notes.append(f"session_type={session_type} derived from staff host")
        elif coach != UNKNOWN:
            session_type, session_confidence = "Admin", ADMIN_CONFIDENCE
            notes.append("session_type=Admin derived from coach only")
        else:
            session_type, session_confidence = UNKNOWN, 0

        for choice in (selection.coach, selection.student):
            if choice is not None:
                notes.append(choice.evidence)
        notes.append(f"week={week_result.week_number} via {week_result.method.value}")
        if week_result.evidence:
            notes.append(week_result.evidence)

        distinct = selection.distinct_values
        unambiguous = (
            len(distinct.get(CandidateField.COACH, set())) == 1
            and len(distinct.get(CandidateField.STUDENT, set())) == 1
        )

        return ResolvedIdentity(
            coach=coach,
            student=student,
            session_type=session_type,
            week_number=week_result.week_number,
            week_method=week_result.method,
            date=selection.date,
            per_field_confidence={
                "coach": selection.coach.confidence if selection.coach else 0,
                "student": selection.student.confidence if selection.student else 0,
                "session_type": session_confidence,
                "week": week_result.confidence,
                "date": selection.date_confidence,
            },
            unambiguous=unambiguous,
            evidence=tuple(notes),
        )
