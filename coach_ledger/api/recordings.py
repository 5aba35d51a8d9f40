"""Recording endpoints: resolve metadata and sync batches to the ledger."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from coach_ledger.adapters.drive_adapter import DriveAdapter
from coach_ledger.config import settings
from coach_ledger.models.identity import ResolvedIdentity
from coach_ledger.models.recording import DataSource, RawRecordingEvent
from coach_ledger.pipeline.batch import BatchReport, BatchRunner
from coach_ledger.pipeline.processor import RecordingProcessor

logger = structlog.get_logger()

router = APIRouter(prefix="/recordings", tags=["recordings"])


class ResolveResponse(BaseModel):
    """Resolution of one recording, without any ledger write."""

    fingerprint: str
    standardized_name: str
    overall_confidence: int
    identity: ResolvedIdentity


class SyncRequest(BaseModel):
    """A batch of recordings to sync.

    Events may be given already normalized, as raw Zoom recording objects,
    or as Google Drive folder IDs to be listed first.
    """

    events: list[RawRecordingEvent] = Field(default_factory=list)
    zoom_recordings: list[dict[str, Any]] = Field(default_factory=list)
    zoom_data_source_tag: str = Field(default=DataSource.ZOOM_API.value)
    drive_folder_ids: list[str] = Field(default_factory=list)


def get_processor(request: Request) -> RecordingProcessor:
    """Dependency to get RecordingProcessor from app state."""
    return request.app.state.processor


def get_drive_adapter(request: Request) -> DriveAdapter | None:
    """Dependency to get the optional DriveAdapter from app state."""
    return getattr(request.app.state, "drive_adapter", None)


@router.post("/resolve", response_model=ResolveResponse)
async def resolve_recording(
    event: RawRecordingEvent,
    processor: RecordingProcessor = Depends(get_processor),
) -> ResolveResponse:
    """Resolve coach, student, week and session type for one recording.

    Nothing is written to the ledger.
    """
    identity, fingerprint = await processor.resolve(event)
    return ResolveResponse(
        fingerprint=fingerprint,
        standardized_name=identity.standardized_name,
        overall_confidence=identity.overall_confidence,
        identity=identity,
    )


@router.post("/sync", response_model=BatchReport)
async def sync_recordings(
    body: SyncRequest,
    processor: RecordingProcessor = Depends(get_processor),
    drive: DriveAdapter | None = Depends(get_drive_adapter),
) -> BatchReport:
    """Resolve a batch of recordings and upsert them into the ledger.

    Raises:
        HTTPException:
            - 400: Empty batch or unreadable Zoom payload
            - 502: A Drive folder could not be listed
            - 503: Drive folders requested but Drive is not configured
    """
    events = list(body.events)

    for payload in body.zoom_recordings:
        try:
            events.append(
                RawRecordingEvent.from_zoom_payload(
                    payload, data_source_tag=body.zoom_data_source_tag
                )
            )
        except (TypeError, ValueError) as e:
            raise HTTPException(
                status_code=400, detail=f"Invalid Zoom recording: {e}"
            ) from e

    if body.drive_folder_ids:
        if drive is None:
            raise HTTPException(status_code=503, detail="Google Drive not configured")
        for folder_id in body.drive_folder_ids:
            try:
                events.append(await drive.build_folder_event(folder_id))
            except Exception as e:
                logger.error(
                    "Drive folder listing failed", folder_id=folder_id, error=str(e)
                )
                raise HTTPException(
                    status_code=502,
                    detail=f"google-drive unavailable: {e}",
                ) from e

    if not events:
        raise HTTPException(status_code=400, detail="No recordings to sync")

    runner = BatchRunner(processor, worker_count=settings.worker_count)
    return await runner.run(events)
