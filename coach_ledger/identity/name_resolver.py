"""Roster-backed name resolution.

Maps arbitrary display names, file tokens and topic fragments to canonical
coach and student names using a variation table built once from the roster.

Resolution order:
1. Exact lowercase match against a registered variation (95)
2. Substring match in either direction (80)
3. No match: input returned unchanged (50)
"""

from typing import Protocol

from coach_ledger.identity.schemas import RosterConfig
from coach_ledger.models.identity import UNKNOWN, NameMatchMethod, NameResolution

EXACT_CONFIDENCE = 95
PARTIAL_CONFIDENCE = 80
NO_MATCH_CONFIDENCE = 50

# Shorter fragments ("al", "an") match far too many names
MIN_PARTIAL_LENGTH = 3


def normalize_name(name: str | None) -> str:
    """Lowercase and collapse inner whitespace."""
    return " ".join((name or "").split()).lower()


class NameResolverStrategy(Protocol):
    """Interface shared by all name resolvers."""

    def resolve(self, raw_name: str | None) -> NameResolution: ...

    def is_coach(self, name: str | None) -> bool: ...

    def is_student(self, name: str | None) -> bool: ...

    def students_for(self, coach: str) -> list[str]: ...

    def coach_for_email(self, email: str | None) -> str | None: ...


class NameResolver:
    """Resolves names against an immutable variation table.

    For every coach and student (and each of their aliases) three variations
    are registered: the exact lowercase name, the name with whitespace
    removed and the first token. Registration is first-wins and runs in
    three passes so an exact name is never shadowed by a first token.
    """

    def __init__(self, roster: RosterConfig):
        """Build the variation table and adjacency maps.

        Args:
            roster: Coaches, students and aliases to register
        """
        self._roster = roster
        self._coaches: dict[str, list[str]] = {
            coach.name: list(coach.students) for coach in roster.coaches
        }
        self._students: set[str] = {s.name for s in roster.students}
        for students in self._coaches.values():
            self._students.update(students)
        self._coach_emails: dict[str, str] = {
            email.strip().lower(): coach.name
            for coach in roster.coaches
            for email in coach.emails
            if email.strip()
        }
        self._variations = self._build_variations()

    def _build_variations(self) -> dict[str, str]:
        entries: list[tuple[str, str]] = []
        for coach in self._roster.coaches:
            entries.extend((n, coach.name) for n in [coach.name, *coach.aliases])
        for canonical in self._all_students():
            aliases = self._student_aliases(canonical)
            entries.extend((n, canonical) for n in [canonical, *aliases])

        variations: dict[str, str] = {}
        for name, canonical in entries:
            key = normalize_name(name)
            if key:
                variations.setdefault(key, canonical)
        for name, canonical in entries:
            key = normalize_name(name).replace(" ", "")
            if key:
                variations.setdefault(key, canonical)
        for name, canonical in entries:
            tokens = normalize_name(name).split(" ")
            if tokens[0]:
                variations.setdefault(tokens[0], canonical)
        return variations

    def _all_students(self) -> list[str]:
        ordered = [s.name for s in self._roster.students]
        for coach in self._roster.coaches:
            ordered.extend(s for s in coach.students if s not in ordered)
        return ordered

    def _student_aliases(self, canonical: str) -> list[str]:
        for student in self._roster.students:
            if student.name == canonical:
                return list(student.aliases)
        return []

    @property
    def coaches(self) -> list[str]:
        return list(self._coaches)

    def resolve(self, raw_name: str | None) -> NameResolution:
        """Resolve a raw name to its canonical form. Never raises.

        Args:
            raw_name: Name as it appeared in a file, topic or participant list

        Returns:
            NameResolution with canonical name, confidence and method
        """
        key = normalize_name(raw_name)
        if not key:
            return NameResolution(
                raw_name=raw_name or "",
                canonical_name=UNKNOWN,
                confidence=0,
                method=NameMatchMethod.EMPTY,
            )

        canonical = self._variations.get(key)
        if canonical is not None:
            return NameResolution(
                raw_name=raw_name or "",
                canonical_name=canonical,
                confidence=EXACT_CONFIDENCE,
                method=NameMatchMethod.EXACT,
            )

        if len(key) >= MIN_PARTIAL_LENGTH:
            for variation, canonical in self._variations.items():
                if len(variation) < MIN_PARTIAL_LENGTH:
                    continue
                if variation in key or key in variation:
                    return NameResolution(
                        raw_name=raw_name or "",
                        canonical_name=canonical,
                        confidence=PARTIAL_CONFIDENCE,
                        method=NameMatchMethod.PARTIAL,
                    )

        return NameResolution(
            raw_name=raw_name or "",
            canonical_name=" ".join((raw_name or "").split()),
            confidence=NO_MATCH_CONFIDENCE,
            method=NameMatchMethod.NO_MATCH,
        )

    def is_coach(self, name: str | None) -> bool:
        return self.resolve(name).canonical_name in self._coaches

    def is_student(self, name: str | None) -> bool:
        return self.resolve(name).canonical_name in self._students

    def students_for(self, coach: str) -> list[str]:
        return list(self._coaches.get(self.resolve(coach).canonical_name, []))

    def coach_for_email(self, email: str | None) -> str | None:
        """Canonical coach owning an email address, if any."""
        if not email:
            return None
        return self._coach_emails.get(email.strip().lower())


class PassthroughNameResolver:
    """Null resolver: knows no one and echoes names at low confidence."""

    def resolve(self, raw_name: str | None) -> NameResolution:
        cleaned = " ".join((raw_name or "").split())
        if not cleaned:
            return NameResolution(
                raw_name=raw_name or "",
                canonical_name=UNKNOWN,
                confidence=0,
                method=NameMatchMethod.EMPTY,
            )
        return NameResolution(
            raw_name=raw_name or "",
            canonical_name=cleaned,
            confidence=NO_MATCH_CONFIDENCE,
            method=NameMatchMethod.NO_MATCH,
        )

    def is_coach(self, name: str | None) -> bool:
        return False

    def is_student(self, name: str | None) -> bool:
        return False

    def students_for(self, coach: str) -> list[str]:
        return []

    def coach_for_email(self, email: str | None) -> str | None:
        return None
