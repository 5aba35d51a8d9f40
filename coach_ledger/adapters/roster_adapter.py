"""Adapter for loading the coaching roster from Google Sheets.

Uses gspread library with service account authentication to read
roster data from Google Sheets.
"""

import asyncio

import gspread
import structlog
from google.oauth2.service_account import Credentials

from coach_ledger.config import settings
from coach_ledger.identity.schemas import RosterConfig

logger = structlog.get_logger()

REQUIRED_COLUMNS = ("Name", "Role")


class RosterAdapter:
    """Adapter for loading the roster from Google Sheets.

    Expected sheet format:
    - Required columns: Name, Role (coach | student)
    - Optional columns: Aliases, Emails (comma-separated), Coach,
      Program Start (YYYY-MM-DD), Program Weeks
    """

    SCOPES = [
        "https://www.googleapis.com/auth/spreadsheets.readonly",
        "https://www.googleapis.com/auth/drive.readonly",
    ]

    def __init__(self, credentials_path: str | None = None):
        """Initialize with service account credentials.

        Args:
            credentials_path: Path to service account JSON.
                             Falls back to GOOGLE_SHEETS_CREDENTIALS.
        """
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

    async def load_roster_config(
        self, spreadsheet_id: str, sheet_name: str = "Roster"
    ) -> RosterConfig:
        """Load the roster from a Google Sheet.

        Args:
            spreadsheet_id: Google Sheets ID (from URL)
            sheet_name: Name of worksheet (default: "Roster")

        Returns:
            RosterConfig versioned by spreadsheet ID

        Raises:
            ValueError: If required columns missing
        """
        return await asyncio.to_thread(
            self._load_roster_config_sync, spreadsheet_id, sheet_name
        )

    def _load_roster_config_sync(
        self, spreadsheet_id: str, sheet_name: str
    ) -> RosterConfig:
        client = self._get_client()
        worksheet = client.open_by_key(spreadsheet_id).worksheet(sheet_name)

        # Header row becomes keys
        records = worksheet.get_all_records()
        if not records:
            return RosterConfig(version=f"sheet:{spreadsheet_id}")

        missing = [c for c in REQUIRED_COLUMNS if c not in records[0]]
        if missing:
            raise ValueError(
                f"Roster sheet must have {', '.join(REQUIRED_COLUMNS)} columns. "
                f"Found columns: {list(records[0].keys())}"
            )

        # Best effort: skip malformed rows
        rows = []
        for row in records:
            try:
                RosterConfig.from_sheet_rows([row])
                rows.append(row)
            except ValueError as e:
                logger.warning("Skipping malformed roster row", row=row, error=str(e))

        roster = RosterConfig.from_sheet_rows(rows, version=f"sheet:{spreadsheet_id}")
        logger.info(
            "loaded roster",
            spreadsheet_id=spreadsheet_id,
            coaches=len(roster.coaches),
            students=len(roster.students),
            programs=len(roster.programs),
        )
        return roster
