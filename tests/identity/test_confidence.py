"""Tests for confidence fusion into a ResolvedIdentity."""

from datetime import UTC, date, datetime

from coach_ledger.identity.confidence import (
    ConfidenceAggregator,
    resolve_candidate_names,
)
from coach_ledger.identity.name_resolver import NameResolver
from coach_ledger.identity.source_fusion import SourceFusionExtractor
from coach_ledger.models.identity import (
    MISC_SESSION,
    TRIVIAL_SESSION,
    UNKNOWN,
    Candidate,
    CandidateField,
    CandidateSource,
    WeekMethod,
    WeekResult,
)
from coach_ledger.models.recording import RawRecordingEvent

WEEK_FIVE = WeekResult(week_number=5, confidence=100, method=WeekMethod.FILENAME)
SEQUENTIAL = WeekResult(week_number=1, confidence=50, method=WeekMethod.SEQUENTIAL)


def _candidate(
    field: CandidateField, value: str, source: CandidateSource, confidence: int
) -> Candidate:
    return Candidate(field=field, value=value, source=source, confidence=confidence)


class TestSelection:
    def test_highest_weighted_confidence_wins(self, resolver: NameResolver):
        candidates = [
            _candidate(CandidateField.COACH, "Rachel", CandidateSource.TOPIC, 95),
            _candidate(CandidateField.COACH, "Jenny", CandidateSource.FILES, 80),
        ]
        names = resolve_candidate_names(candidates, resolver)

        identity = ConfidenceAggregator().aggregate(candidates, names, WEEK_FIVE)

        # files 0.4 x 80 = 32 beats topic 0.2 x 95 = 19
        assert identity.coach == "Jenny"
        assert identity.per_field_confidence["coach"] == 80

    def test_resolver_confidence_caps_extraction(self, resolver: NameResolver):
        candidates = [
            _candidate(CandidateField.COACH, "Jenny Duan", CandidateSource.HOST, 100),
        ]
        names = resolve_candidate_names(candidates, resolver)

        identity = ConfidenceAggregator().aggregate(candidates, names, WEEK_FIVE)

        assert identity.coach == "Jenny"
        assert identity.per_field_confidence["coach"] == 95

    def test_unmatched_name_is_capped_at_fifty(self, resolver: NameResolver):
        candidates = [
            _candidate(CandidateField.STUDENT, "Zed", CandidateSource.PARTICIPANTS, 85),
        ]
        names = resolve_candidate_names(candidates, resolver)

        identity = ConfidenceAggregator().aggregate(candidates, names, WEEK_FIVE)

        assert identity.student == "Zed"
        assert identity.per_field_confidence["student"] == 50

    def test_equal_scores_break_by_source_priority(self, resolver: NameResolver):
        """topic 0.2 x 50 ties host 0.1 x 100; topic outranks host."""
        candidates = [
            _candidate(CandidateField.SESSION_TYPE, "SAT", CandidateSource.HOST, 100),
            _candidate(CandidateField.SESSION_TYPE, "Essay", CandidateSource.TOPIC, 50),
        ]

        identity = ConfidenceAggregator().aggregate(candidates, {}, WEEK_FIVE)

        assert identity.session_type == "Essay"

    def test_equal_scores_same_source_keep_first(self, resolver: NameResolver):
        candidates = [
            _candidate(CandidateField.COACH, "Jenny", CandidateSource.PARTICIPANTS, 90),
            _candidate(CandidateField.COACH, "Rachel", CandidateSource.PARTICIPANTS, 90),
            _candidate(CandidateField.STUDENT, "Huda", CandidateSource.PARTICIPANTS, 85),
        ]
        names = resolve_candidate_names(candidates, resolver)

        identity = ConfidenceAggregator().aggregate(candidates, names, WEEK_FIVE)

        assert identity.coach == "Jenny"
        assert identity.unambiguous is False

    def test_variants_of_one_name_are_unambiguous(self, resolver: NameResolver):
        candidates = [
            _candidate(CandidateField.COACH, "Jenny Duan", CandidateSource.PARTICIPANTS, 90),
            _candidate(CandidateField.COACH, "Jenny", CandidateSource.TOPIC, 80),
            _candidate(CandidateField.STUDENT, "Huda", CandidateSource.TOPIC, 80),
        ]
        names = resolve_candidate_names(candidates, resolver)

        identity = ConfidenceAggregator().aggregate(candidates, names, WEEK_FIVE)

        assert identity.unambiguous is True


class TestDate:
    def test_start_time_is_authoritative(self, resolver: NameResolver):
        candidates = [
            _candidate(CandidateField.DATE, "2024-10-01", CandidateSource.FILES, 90),
        ]

        identity = ConfidenceAggregator().aggregate(
            candidates,
            {},
            WEEK_FIVE,
            start_time=datetime(2024, 10, 7, 16, 0, tzinfo=UTC),
        )

        assert identity.date == date(2024, 10, 7)
        assert identity.per_field_confidence["date"] == 100

    def test_date_candidate_without_start_time(self):
        candidates = [
            _candidate(CandidateField.DATE, "2024-10-01", CandidateSource.TOPIC, 85),
        ]

        identity = ConfidenceAggregator().aggregate(candidates, {}, WEEK_FIVE)

        assert identity.date == date(2024, 10, 1)
        assert identity.per_field_confidence["date"] == 85


class TestSessionType:
    def test_coaching_when_both_names_known(self, resolver: NameResolver):
        candidates = [
            _candidate(CandidateField.COACH, "Jenny", CandidateSource.TOPIC, 80),
            _candidate(CandidateField.STUDENT, "Huda", CandidateSource.TOPIC, 80),
        ]
        names = resolve_candidate_names(candidates, resolver)

        identity = ConfidenceAggregator().aggregate(candidates, names, WEEK_FIVE)

        assert identity.session_type == "Coaching"
        assert identity.per_field_confidence["session_type"] == 90

    def test_admin_when_only_coach_known(self, resolver: NameResolver):
        candidates = [
            _candidate(CandidateField.COACH, "Rachel", CandidateSource.HOST, 95),
        ]
        names = resolve_candidate_names(candidates, resolver)

        identity = ConfidenceAggregator().aggregate(candidates, names, SEQUENTIAL)

        assert identity.session_type == "Admin"
        assert identity.per_field_confidence["session_type"] == 70
        assert identity.standardized_name == "Rachel_Admin_Week1"

    def test_unknown_without_names(self):
        identity = ConfidenceAggregator().aggregate([], {}, SEQUENTIAL)

        assert identity.session_type == UNKNOWN
        assert identity.coach == UNKNOWN
        assert identity.student == UNKNOWN

    def test_staff_host_without_student_is_misc(self):
        identity = ConfidenceAggregator().aggregate(
            [], {}, SEQUENTIAL, staff_host=True, duration_seconds=45 * 60
        )

        assert identity.session_type == MISC_SESSION
        assert identity.per_field_confidence["session_type"] == 70
        assert identity.standardized_name == "MISC_Week1"

    def test_short_staff_session_is_trivial(self):
        identity = ConfidenceAggregator().aggregate(
            [],
            {},
            SEQUENTIAL,
            start_time=datetime(2024, 10, 2, 9, 0, tzinfo=UTC),
            staff_host=True,
            duration_seconds=10 * 60,
        )

        assert identity.session_type == TRIVIAL_SESSION
        assert identity.standardized_name == "TRIVIAL_2024-10-02"

    def test_unknown_duration_is_not_trivial(self):
        identity = ConfidenceAggregator().aggregate([], {}, SEQUENTIAL, staff_host=True)

        assert identity.session_type == MISC_SESSION

    def test_staff_host_with_student_stays_coaching(self, resolver: NameResolver):
        candidates = [
            _candidate(CandidateField.COACH, "Jenny", CandidateSource.TOPIC, 80),
            _candidate(CandidateField.STUDENT, "Huda", CandidateSource.TOPIC, 80),
        ]
        names = resolve_candidate_names(candidates, resolver)

        identity = ConfidenceAggregator().aggregate(
            candidates, names, WEEK_FIVE, staff_host=True, duration_seconds=5 * 60
        )

        assert identity.session_type == "Coaching"


class TestEndToEnd:
    def test_jenny_and_huda_week_five(
        self,
        extractor: SourceFusionExtractor,
        resolver: NameResolver,
        coaching_event: RawRecordingEvent,
    ):
        candidates = extractor.extract(coaching_event)
        names = resolve_candidate_names(candidates, resolver)

        identity = ConfidenceAggregator().aggregate(
            candidates, names, WEEK_FIVE, start_time=coaching_event.start_time
        )

        assert identity.coach == "Jenny"
        assert identity.student == "Huda"
        assert identity.week_number == 5
        assert identity.week_method == WeekMethod.FILENAME
        assert identity.session_type == "Coaching"
        assert identity.unambiguous is True
        assert 85 <= identity.overall_confidence <= 100
        assert identity.standardized_name == "Jenny_Huda_Week5_2024-10-07"

    def test_degraded_event_never_fails(
        self,
        extractor: SourceFusionExtractor,
        resolver: NameResolver,
        degraded_event: RawRecordingEvent,
    ):
        candidates = extractor.extract(degraded_event)
        names = resolve_candidate_names(candidates, resolver)

        identity = ConfidenceAggregator().aggregate(
            candidates, names, SEQUENTIAL, evidence=["missing: start_time"]
        )

        assert identity.coach == UNKNOWN
        assert identity.student == UNKNOWN
        assert identity.week_number == 1
        assert identity.overall_confidence <= 50
        assert "missing: start_time" in identity.evidence
