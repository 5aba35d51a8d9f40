"""Roster configuration schemas.

Defines the externally loaded roster: coaches with their aliases, emails
and students, students with aliases, and program timelines per pair.
"""

import datetime as dt
import json
from pathlib import Path

from pydantic import BaseModel, Field


def _split_cell(value: str | None) -> list[str]:
    """Split a comma-separated sheet cell into trimmed items."""
    if not value:
        return []
    return [item.strip() for item in str(value).split(",") if item.strip()]


class CoachProfile(BaseModel):
    """Coach entry with the students they are assigned to."""

    name: str = Field(description="Canonical name")
    aliases: list[str] = Field(
        default_factory=list, description="Known variations, e.g. full name"
    )
    emails: list[str] = Field(default_factory=list)
    students: list[str] = Field(
        default_factory=list, description="Canonical names of assigned students"
    )


class StudentProfile(BaseModel):
    """Student entry."""

    name: str = Field(description="Canonical name")
    aliases: list[str] = Field(default_factory=list)


class ProgramTimeline(BaseModel):
    """Program start and length for a student (optionally a specific coach)."""

    student: str
    coach: str | None = Field(
        default=None, description="Restrict the timeline to one coach"
    )
    start_date: dt.date
    total_weeks: int = Field(ge=1)


class RosterConfig(BaseModel):
    """Versioned roster injected into the name resolver and week inferencer.

    Loaded from a JSON document (``from_file``) or from roster sheet rows
    (``from_sheet_rows``); never compiled into the engine.
    """

    version: str = Field(default="1")
    coaches: list[CoachProfile] = Field(default_factory=list)
    students: list[StudentProfile] = Field(default_factory=list)
    programs: list[ProgramTimeline] = Field(default_factory=list)
    staff_email_domains: list[str] = Field(default_factory=list)

    @classmethod
    def from_file(cls, path: str | Path) -> "RosterConfig":
        """Load a roster from a JSON file.

        Args:
            path: Path to a JSON document matching this schema

        Returns:
            Parsed RosterConfig
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(data)

    @classmethod
    def from_sheet_rows(
        cls, rows: list[dict], version: str = "sheet"
    ) -> "RosterConfig":
        """Build a roster from spreadsheet rows.

        Expected columns: Name, Role (coach|student), Aliases, Emails,
        Coach (for students), Program Start, Program Weeks. List cells are
        comma-separated. Rows with an unknown role are ignored.

        Args:
            rows: Dictionaries of column name -> value
            version: Version label to record on the roster

        Returns:
            RosterConfig assembled from the rows
        """
        coaches: dict[str, CoachProfile] = {}
        students: list[StudentProfile] = []
        programs: list[ProgramTimeline] = []
        assignments: list[tuple[str, str]] = []

        for row in rows:
            name = str(row.get("Name") or "").strip()
            role = str(row.get("Role") or "").strip().lower()
            if not name:
                continue
            aliases = _split_cell(row.get("Aliases"))

            if role == "coach":
                coaches[name] = CoachProfile(
                    name=name, aliases=aliases, emails=_split_cell(row.get("Emails"))
                )
            elif role == "student":
                students.append(StudentProfile(name=name, aliases=aliases))
                coach = str(row.get("Coach") or "").strip() or None
                if coach:
                    assignments.append((coach, name))
                start = str(row.get("Program Start") or "").strip()
                weeks = str(row.get("Program Weeks") or "").strip()
                if start and weeks:
                    programs.append(
                        ProgramTimeline(
                            student=name,
                            coach=coach,
                            start_date=dt.date.fromisoformat(start),
                            total_weeks=int(weeks),
                        )
                    )

        for coach, student in assignments:
            if coach in coaches:
                coaches[coach].students.append(student)

        return cls(
            version=version,
            coaches=list(coaches.values()),
            students=students,
            programs=programs,
        )

    def program_for(self, coach: str, student: str) -> ProgramTimeline | None:
        """Find the program timeline for a pair.

        A timeline bound to the coach wins over one bound to the student only.
        """
        fallback = None
        for program in self.programs:
            if program.student.lower() != student.lower():
                continue
            if program.coach is None:
                fallback = fallback or program
            elif program.coach.lower() == coach.lower():
                return program
        return fallback
