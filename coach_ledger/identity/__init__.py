"""Identity resolution for coaching session recordings.

This module provides:
- NameResolver: Roster-backed variation table (exact -> partial -> passthrough)
- WeekInferencer: Five ordered week inference methods plus chronology
- SourceFusionExtractor: Candidates from files, participants, topic and host
- ConfidenceAggregator: Weighted selection into a ResolvedIdentity
- RosterConfig: Externally loaded coaches, students and program timelines
"""

from coach_ledger.identity.chronology import (
    ChronologyStore,
    InMemoryChronologyStore,
    seed_chronology,
)
from coach_ledger.identity.confidence import (
    ConfidenceAggregator,
    FieldSelection,
    resolve_candidate_names,
)
from coach_ledger.identity.name_resolver import (
    NameResolver,
    NameResolverStrategy,
    PassthroughNameResolver,
)
from coach_ledger.identity.schemas import (
    CoachProfile,
    ProgramTimeline,
    RosterConfig,
    StudentProfile,
)
from coach_ledger.identity.source_fusion import SourceFusionExtractor
from coach_ledger.identity.week_inferencer import (
    FixedWeekInferencer,
    WeekInferencer,
    WeekInferencerStrategy,
    find_week_number,
)

__all__ = [
    "ChronologyStore",
    "CoachProfile",
    "ConfidenceAggregator",
    "FieldSelection",
    "FixedWeekInferencer",
    "InMemoryChronologyStore",
    "NameResolver",
    "NameResolverStrategy",
    "PassthroughNameResolver",
    "ProgramTimeline",
    "RosterConfig",
    "SourceFusionExtractor",
    "StudentProfile",
    "WeekInferencer",
    "WeekInferencerStrategy",
    "find_week_number",
    "resolve_candidate_names",
    "seed_chronology",
]
