"""Repository for persisting per-pair chronology entries.

Implements the ChronologyStore interface on top of libSQL so workers and
restarts share one chronology.
"""

from datetime import date

from coach_ledger.db.turso import TursoClient
from coach_ledger.identity.chronology import pair_key
from coach_ledger.models.ledger import ChronologyEntry
from coach_ledger.pipeline.retry import NoRetry, RetryPolicy

STATE_SOURCE = "state-db"


class ChronologyRepository:
    """Chronology table keyed by (coach, student).

    An entry with an external ID is kept once per pair and replaced when the
    recording is resolved again; entries without one are deduplicated on
    (date, week). Reads and writes go through the retry policy.
    """

    def __init__(self, db_client: TursoClient, retry: RetryPolicy | None = None):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
            retry: Retry/timeout policy for database calls
        """
        self._db = db_client
        self._retry = retry or NoRetry()

    async def initialize(self) -> None:
        """Create chronology table if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS chronology_entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                coach_key TEXT NOT NULL,
                student_key TEXT NOT NULL,
                coach TEXT NOT NULL,
                student TEXT NOT NULL,
                session_date TEXT NOT NULL,
                week_number INTEGER NOT NULL,
                external_id TEXT,
                dedupe_key TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(coach_key, student_key, dedupe_key)
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_chronology_pair
            ON chronology_entries(coach_key, student_key, session_date)
            """,
            ]
        )

    async def entries(self, coach: str, student: str) -> list[ChronologyEntry]:
        """Entries for a pair ordered by session date.

        Args:
            coach: Canonical coach name (case-insensitive)
            student: Canonical student name (case-insensitive)

        Returns:
            ChronologyEntry list, oldest first
        """
        coach_key, student_key = pair_key(coach, student)
        result = await self._retry.call(
            STATE_SOURCE,
            self._db.execute,
            """
            SELECT coach, student, session_date, week_number, external_id
            FROM chronology_entries
            WHERE coach_key = ? AND student_key = ?
            ORDER BY session_date, id
            """,
            [coach_key, student_key],
        )
        return [
            ChronologyEntry(
                coach=row[0],
                student=row[1],
                date=date.fromisoformat(row[2]),
                week_number=row[3],
                external_id=row[4],
            )
            for row in result.rows
        ]

    async def append(self, entry: ChronologyEntry) -> bool:
        """Record an entry, replacing the week and date of a known recording.

        Returns:
            True if a row was inserted or changed
        """
        coach_key, student_key = pair_key(entry.coach, entry.student)
        dedupe_key = entry.external_id or (
            f"{entry.date.isoformat()}#{entry.week_number}"
        )
        result = await self._retry.call(
            STATE_SOURCE,
            self._db.execute,
            """
            INSERT INTO chronology_entries
                (coach_key, student_key, coach, student, session_date,
                 week_number, external_id, dedupe_key)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(coach_key, student_key, dedupe_key) DO UPDATE SET
                session_date = excluded.session_date,
                week_number = excluded.week_number
            WHERE session_date != excluded.session_date
                OR week_number != excluded.week_number
            """,
            [
                coach_key,
                student_key,
                entry.coach,
                entry.student,
                entry.date.isoformat(),
                entry.week_number,
                entry.external_id,
                dedupe_key,
            ],
        )
        return result.rows_affected > 0

    async def count(self) -> int:
        result = await self._retry.call(
            STATE_SOURCE, self._db.execute, "SELECT COUNT(*) FROM chronology_entries"
        )
        return result.rows[0][0]
