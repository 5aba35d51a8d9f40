"""Google Drive collaborators: folder listings and transcript text.

Uses Google Drive API with service account authentication. Only one
folder level is listed; traversal of folder trees and download of
recording bytes are left to other tools.
"""

import asyncio
import io
from datetime import UTC, datetime

import structlog
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseDownload

from coach_ledger.config import settings
from coach_ledger.identity.date_normalizer import find_dates
from coach_ledger.models.recording import DataSource, RawRecordingEvent, SourceFile
from coach_ledger.services.transcript_parser import TranscriptParser

logger = structlog.get_logger()

# Read-only access is enough for listing and downloading
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
TRANSCRIPT_EXTENSIONS = (".vtt", ".srt", ".txt")


class DriveAdapter:
    """Adapter for reading recording folders from Google Drive.

    Follows the established adapter pattern with lazy service initialization.
    """

    def __init__(self, credentials_path: str | None = None):
        """Initialize with service account credentials.

        Args:
            credentials_path: Path to service account JSON.
                             Falls back to GOOGLE_DRIVE_CREDENTIALS, then
                             GOOGLE_SHEETS_CREDENTIALS.
        """
        self._credentials_path = (
            credentials_path
            or settings.google_drive_credentials
            or settings.google_sheets_credentials
        )
        self._service = None

    def _get_service(self):
        """Get or create Drive API service.

        Raises:
            ValueError: If no credentials path configured
        """
        if self._service is None:
            if not self._credentials_path:
                raise ValueError(
                    "No credentials. Set GOOGLE_DRIVE_CREDENTIALS env var "
                    "or pass credentials_path to constructor."
                )
            creds = Credentials.from_service_account_file(
                self._credentials_path,
                scopes=DRIVE_SCOPES,
            )
            self._service = build("drive", "v3", credentials=creds)
        return self._service

    async def build_folder_event(self, folder_id: str) -> RawRecordingEvent:
        """Describe one recording folder as a RawRecordingEvent.

        The folder name becomes the topic. The session time is the first
        date in the folder name, else the folder creation time.

        Args:
            folder_id: Google Drive folder ID

        Returns:
            RawRecordingEvent tagged ``google-drive``
        """
        return await asyncio.to_thread(self._build_folder_event_sync, folder_id)

    def _build_folder_event_sync(self, folder_id: str) -> RawRecordingEvent:
        service = self._get_service()
        folder = (
            service.files()
            .get(fileId=folder_id, fields="id,name,createdTime")
            .execute()
        )
        files = self._list_files_sync(folder_id)

        name = folder.get("name") or ""
        start_time = None
        dates = find_dates(name)
        if dates:
            start_time = datetime(dates[0].year, dates[0].month, dates[0].day, tzinfo=UTC)
        elif folder.get("createdTime"):
            start_time = datetime.fromisoformat(folder["createdTime"].replace("Z", "+00:00"))

        source_files = tuple(
            SourceFile(
                name=f.get("name") or "",
                size_bytes=int(f.get("size") or 0),
                file_id=f.get("id"),
            )
            for f in files
            if f.get("mimeType") != FOLDER_MIME_TYPE
        )

        logger.debug(
            "built event from Drive folder",
            folder_id=folder_id,
            folder_name=name,
            file_count=len(source_files),
        )
        return RawRecordingEvent(
            external_id=folder.get("id") or folder_id,
            topic=name,
            start_time=start_time,
            source_files=source_files,
            data_source_tag=DataSource.GOOGLE_DRIVE.value,
        )

    def _list_files_sync(self, folder_id: str) -> list[dict]:
        """List direct children of a folder, following pagination."""
        service = self._get_service()
        files: list[dict] = []
        page_token = None
        while True:
            result = (
                service.files()
                .list(
                    q=f"'{folder_id}' in parents and trashed = false",
                    fields="nextPageToken, files(id,name,size,mimeType)",
                    pageSize=100,
                    pageToken=page_token,
                )
                .execute()
            )
            files.extend(result.get("files", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                return files

    async def download_text(self, file_id: str) -> str:
        """Download a small text file and decode it as UTF-8."""
        return await asyncio.to_thread(self._download_text_sync, file_id)

    def _download_text_sync(self, file_id: str) -> str:
        service = self._get_service()
        request = service.files().get_media(fileId=file_id)
        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, request)
        done = False
        while not done:
            _, done = downloader.next_chunk()
        return buffer.getvalue().decode("utf-8", errors="replace")

    async def health_check(self) -> bool:
        """Check if adapter is properly configured.

        Returns:
            True if credentials can authenticate, False otherwise
        """
        try:
            self._get_service()
            return True
        except Exception:
            return False


class DriveTranscriptProvider:
    """Transcript text for Drive imports whose files include a transcript.

    Other sources carry their own storage IDs, which Drive cannot resolve.
    """

    def __init__(
        self,
        drive: DriveAdapter,
        parser: TranscriptParser | None = None,
    ):
        self._drive = drive
        self._parser = parser or TranscriptParser()

    async def get_transcript_text(self, event: RawRecordingEvent) -> str | None:
        """Download and flatten the first transcript file of the event.

        Returns:
            Transcript text, or None if the event has no Drive transcript
        """
        if event.data_source != DataSource.GOOGLE_DRIVE.value:
            return None
        transcript = next(
            (
                f
                for f in event.source_files
                if f.file_id and f.extension in TRANSCRIPT_EXTENSIONS
            ),
            None,
        )
        if transcript is None:
            return None

        content = await self._drive.download_text(transcript.file_id)
        parsed = self._parser.parse(content, transcript.extension)
        logger.debug(
            "fetched transcript",
            external_id=event.external_id,
            file_name=transcript.name,
            captions=parsed.caption_count,
        )
        return parsed.text or None
