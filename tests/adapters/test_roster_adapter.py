"""Tests for RosterAdapter - Google Sheets roster loading."""

from unittest.mock import MagicMock, patch

import pytest

from coach_ledger.adapters.roster_adapter import RosterAdapter
from coach_ledger.config import settings


@pytest.fixture
def mock_gspread():
    with patch("coach_ledger.adapters.roster_adapter.gspread") as mock:
        yield mock


@pytest.fixture
def mock_credentials():
    with patch("coach_ledger.adapters.roster_adapter.Credentials") as mock:
        yield mock


def _with_records(mock_gspread, records: list[dict]) -> MagicMock:
    worksheet = MagicMock()
    worksheet.get_all_records.return_value = records
    mock_gspread.authorize.return_value.open_by_key.return_value.worksheet.return_value = (
        worksheet
    )
    return worksheet


class TestLoadRosterConfig:
    """Tests for RosterAdapter.load_roster_config."""

    @pytest.mark.asyncio
    async def test_builds_coaches_students_and_programs(
        self, mock_gspread, mock_credentials
    ):
        """Should assign students to coaches and read program timelines."""
        _with_records(
            mock_gspread,
            [
                {"Name": "Jenny", "Role": "Coach", "Aliases": "Jenny Duan", "Emails": "jenny@coaching.example"},
                {"Name": "Huda", "Role": "student", "Aliases": "", "Coach": "Jenny",
                 "Program Start": "2024-09-02", "Program Weeks": "12"},
                {"Name": "Andrew", "Role": "student", "Aliases": "Andy, Drew", "Coach": "Jenny"},
            ],
        )
        adapter = RosterAdapter(credentials_path="/test/creds.json")

        roster = await adapter.load_roster_config("sheet123")

        assert roster.version == "sheet:sheet123"
        assert [c.name for c in roster.coaches] == ["Jenny"]
        assert roster.coaches[0].aliases == ["Jenny Duan"]
        assert roster.coaches[0].students == ["Huda", "Andrew"]
        assert roster.students[1].aliases == ["Andy", "Drew"]
        assert len(roster.programs) == 1
        assert roster.programs[0].total_weeks == 12

    @pytest.mark.asyncio
    async def test_missing_required_columns(self, mock_gspread, mock_credentials):
        """Should raise ValueError naming the found columns."""
        _with_records(mock_gspread, [{"Name": "Jenny", "Email": "jenny@coaching.example"}])
        adapter = RosterAdapter(credentials_path="/test/creds.json")

        with pytest.raises(ValueError, match="Name, Role"):
            await adapter.load_roster_config("sheet123")

    @pytest.mark.asyncio
    async def test_skips_malformed_rows(self, mock_gspread, mock_credentials):
        """A bad program date drops that row, not the roster."""
        _with_records(
            mock_gspread,
            [
                {"Name": "Jenny", "Role": "coach"},
                {"Name": "Huda", "Role": "student", "Coach": "Jenny",
                 "Program Start": "soon", "Program Weeks": "12"},
                {"Name": "Maya", "Role": "student", "Coach": "Jenny"},
            ],
        )
        adapter = RosterAdapter(credentials_path="/test/creds.json")

        roster = await adapter.load_roster_config("sheet123")

        assert [s.name for s in roster.students] == ["Maya"]
        assert roster.coaches[0].students == ["Maya"]

    @pytest.mark.asyncio
    async def test_empty_sheet(self, mock_gspread, mock_credentials):
        _with_records(mock_gspread, [])
        adapter = RosterAdapter(credentials_path="/test/creds.json")

        roster = await adapter.load_roster_config("sheet123", sheet_name="People")

        assert roster.coaches == []
        assert roster.students == []

    def test_missing_credentials(self, mock_gspread, monkeypatch):
        monkeypatch.setattr(settings, "google_sheets_credentials", None)
        adapter = RosterAdapter()

        with pytest.raises(ValueError, match="No credentials"):
            adapter._get_client()
