"""Ledger backend storing partitions as Google Sheets tabs.

Uses gspread with service account authentication. Each partition is one
worksheet with a header row; rows are keyed by the ``fingerprint`` column.
"""

import asyncio
import time

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1

from coach_ledger.adapters.base import WriteResult
from coach_ledger.config import settings
from coach_ledger.errors import LedgerConflict
from coach_ledger.models.ledger import TIMESTAMP_COLUMN, LedgerWrite, changed_columns

logger = structlog.get_logger()

KEY_COLUMN = "fingerprint"


def rows_from_values(values: list[list[str]]) -> list[dict[str, str]]:
    """Turn worksheet values (header first) into column -> cell dicts."""
    if not values:
        return []
    header = values[0]
    rows = []
    for raw in values[1:]:
        padded = list(raw) + [""] * (len(header) - len(raw))
        rows.append(dict(zip(header, padded, strict=False)))
    return rows


class SheetsLedgerBackend:
    """Ledger backend writing to one spreadsheet, one tab per partition.

    Follows the established adapter pattern with lazy client
    initialization; blocking gspread calls run in a worker thread.
    """

    SCOPES = [
        "https://www.googleapis.com/auth/spreadsheets",
        "https://www.googleapis.com/auth/drive.file",
    ]

    def __init__(
        self,
        spreadsheet_id: str | None = None,
        credentials_path: str | None = None,
    ):
        """Initialize with spreadsheet and service account credentials.

        Args:
            spreadsheet_id: Ledger spreadsheet ID. Falls back to
                LEDGER_SPREADSHEET_ID.
            credentials_path: Path to service account JSON. Falls back to
                GOOGLE_SHEETS_CREDENTIALS.
        """
        self._spreadsheet_id = spreadsheet_id or settings.ledger_spreadsheet_id
        self._credentials_path = credentials_path or settings.google_sheets_credentials
        self._client: gspread.Client | None = None

    def _get_client(self) -> gspread.Client:
        """Get or create authenticated gspread client.

        Raises:
            ValueError: If no credentials path configured
        """
        if self._client is None:
            if not self._credentials_path:
                raise ValueError(
                    "No credentials. Set GOOGLE_SHEETS_CREDENTIALS env var "
                    "or pass credentials_path to constructor."
                )
            creds = Credentials.from_service_account_file(
                self._credentials_path,
                scopes=self.SCOPES,
            )
            self._client = gspread.authorize(creds)
        return self._client

    def _spreadsheet(self) -> gspread.Spreadsheet:
        if not self._spreadsheet_id:
            raise ValueError("No ledger spreadsheet. Set LEDGER_SPREADSHEET_ID.")
        return self._get_client().open_by_key(self._spreadsheet_id)

    async def get_rows(self, partition: str) -> list[dict[str, str]]:
        """Read every row of a partition tab. A missing tab has no rows."""
        return await asyncio.to_thread(self._get_rows_sync, partition)

    def _get_rows_sync(self, partition: str) -> list[dict[str, str]]:
        try:
            worksheet = self._spreadsheet().worksheet(partition)
        except gspread.WorksheetNotFound:
            return []
        return rows_from_values(worksheet.get_all_values())

    async def batch_upsert(
        self, partition: str, writes: list[LedgerWrite]
    ) -> WriteResult:
        """Append inserts and rewrite changed cells of updates.

        The tab is re-read first; if any insert target already exists, or
        any update target differs from the row the write was planned
        against, nothing is written and LedgerConflict is raised.
        """
        return await asyncio.to_thread(self._batch_upsert_sync, partition, writes)

    def _batch_upsert_sync(
        self, partition: str, writes: list[LedgerWrite]
    ) -> WriteResult:
        start_time = time.monotonic()
        columns = list(writes[0].columns) if writes else [KEY_COLUMN]
        worksheet = self._get_or_create_worksheet(partition, columns)

        values = worksheet.get_all_values()
        header = values[0] if values and any(values[0]) else []
        if not header:
            worksheet.update("A1", [columns])
            header = columns

        live: dict[str, tuple[int, dict[str, str]]] = {}
        for row_number, row in enumerate(rows_from_values([header, *values[1:]]), start=2):
            if row.get(KEY_COLUMN):
                live.setdefault(row[KEY_COLUMN], (row_number, row))

        conflicts = []
        for write in writes:
            current = live.get(write.target)
            if write.is_insert:
                if current is not None:
                    conflicts.append(write.fingerprint)
            elif current is None or changed_columns(write.previous or {}, current[1]):
                conflicts.append(write.fingerprint)
        if conflicts:
            raise LedgerConflict(partition, conflicts)

        inserts = [
            [write.row.get(column, "") for column in header]
            for write in writes
            if write.is_insert
        ]
        updates = []
        for write in writes:
            if write.is_insert:
                continue
            row_number = live[write.target][0]
            for column in [*write.changed_fields, TIMESTAMP_COLUMN]:
                if column in header:
                    updates.append(
                        {
                            "range": rowcol_to_a1(row_number, header.index(column) + 1),
                            "values": [[write.row.get(column, "")]],
                        }
                    )

        if updates:
            worksheet.batch_update(updates, value_input_option="RAW")
        if inserts:
            worksheet.append_rows(inserts, value_input_option="RAW")

        duration_ms = int((time.monotonic() - start_time) * 1000)
        updated = len(writes) - len(inserts)
        logger.info(
            "wrote ledger rows to sheet",
            spreadsheet_id=self._spreadsheet_id,
            partition=partition,
            inserted=len(inserts),
            updated=updated,
            cells=len(updates),
            duration_ms=duration_ms,
        )
        return WriteResult(
            success=True,
            partition=partition,
            inserted=len(inserts),
            updated=updated,
            external_id=self._spreadsheet_id,
            url=f"https://docs.google.com/spreadsheets/d/{self._spreadsheet_id}",
            duration_ms=duration_ms,
        )

    def _get_or_create_worksheet(
        self, partition: str, columns: list[str]
    ) -> gspread.Worksheet:
        spreadsheet = self._spreadsheet()
        try:
            return spreadsheet.worksheet(partition)
        except gspread.WorksheetNotFound:
            worksheet = spreadsheet.add_worksheet(
                title=partition, rows=100, cols=len(columns)
            )
            worksheet.update("A1", [columns])
            logger.info("created ledger tab", partition=partition)
            return worksheet

    async def health_check(self) -> bool:
        """Check if adapter is properly configured.

        Returns:
            True if credentials can authenticate, False otherwise
        """
        try:
            self._get_client()
            return True
        except Exception:
            return False
