"""Repository for committed ledger fingerprints.

Implements the SeenStore interface so the FingerprintIndex survives
restarts and is shared between workers.
"""

from coach_ledger.db.turso import TursoClient
from coach_ledger.pipeline.retry import NoRetry, RetryPolicy

STATE_SOURCE = "state-db"


class SeenFingerprintRepository:
    """Set of partition-scoped fingerprints already written to the ledger."""

    def __init__(self, db_client: TursoClient, retry: RetryPolicy | None = None):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
            retry: Retry/timeout policy for lookups and inserts
        """
        self._db = db_client
        self._retry = retry or NoRetry()

    async def initialize(self) -> None:
        """Create fingerprints table if not exists."""
        await self._db.execute(
            """
            CREATE TABLE IF NOT EXISTS seen_fingerprints (
                scoped_key TEXT PRIMARY KEY,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    async def contains(self, key: str) -> bool:
        result = await self._retry.call(
            STATE_SOURCE,
            self._db.execute,
            "SELECT 1 FROM seen_fingerprints WHERE scoped_key = ?",
            [key],
        )
        return bool(result.rows)

    async def add(self, key: str) -> None:
        await self._retry.call(
            STATE_SOURCE,
            self._db.execute,
            """
            INSERT INTO seen_fingerprints (scoped_key)
            VALUES (?)
            ON CONFLICT(scoped_key) DO NOTHING
            """,
            [key],
        )

    async def count(self) -> int:
        result = await self._db.execute("SELECT COUNT(*) FROM seen_fingerprints")
        return result.rows[0][0]
