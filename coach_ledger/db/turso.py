"""Turso/libSQL database client wrapper.

Holds the state shared between workers and restarts: the per-pair
chronology and the set of committed fingerprints.
"""

from typing import Any

import structlog
from libsql_client import Client, ResultSet, Statement, create_client

from coach_ledger.config import settings

logger = structlog.get_logger()

DEFAULT_URL = "file:ledger_state.db"


class TursoClient:
    """Wrapper for Turso/libSQL async client.

    Supports both cloud Turso (with auth token) and local SQLite files.
    """

    def __init__(
        self,
        url: str | None = None,
        auth_token: str | None = None,
    ):
        """Initialize client with connection parameters.

        Args:
            url: Database URL. Defaults to settings or a local file.
            auth_token: Auth token for Turso cloud. Defaults to settings.
        """
        self.url = url or settings.turso_database_url or DEFAULT_URL
        self.auth_token = auth_token or settings.turso_auth_token
        self._client: Client | None = None

    async def connect(self) -> None:
        """Establish database connection."""
        if self._client is not None:
            return

        if self.auth_token and self.url.startswith("libsql://"):
            self._client = create_client(url=self.url, auth_token=self.auth_token)
        else:
            self._client = create_client(url=self.url)

        logger.info("Connected to state database", url=self.url)

    def _require_client(self) -> Client:
        if not self._client:
            msg = "Not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client

    async def execute(
        self,
        sql: str,
        params: list[Any] | None = None,
    ) -> ResultSet:
        """Execute a SQL statement.

        Args:
            sql: SQL query with ? placeholders
            params: Query parameters

        Returns:
            ResultSet with rows and metadata
        """
        return await self._require_client().execute(sql, params or [])

    async def execute_batch(
        self, statements: list[str | tuple[str, list[Any]]]
    ) -> list[ResultSet]:
        """Execute several statements in one transaction.

        Args:
            statements: Plain SQL strings or (sql, params) pairs
        """
        prepared = [
            Statement(s) if isinstance(s, str) else Statement(s[0], s[1])
            for s in statements
        ]
        return await self._require_client().batch(prepared)

    async def close(self) -> None:
        """Close the database connection."""
        if self._client:
            await self._client.close()
            self._client = None
            logger.info("State database connection closed")

    async def is_healthy(self) -> bool:
        """Check if database connection is healthy."""
        try:
            if not self._client:
                return False
            result = await self._client.execute("SELECT 1")
            return len(result.rows) == 1
        except Exception:
            return False
