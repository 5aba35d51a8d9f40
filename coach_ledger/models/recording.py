"""Raw recording events as produced by the upstream listing collaborators."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DataSource(str, Enum):
    """Canonical upstream source tags."""

    ZOOM_API = "zoom-api"
    WEBHOOK = "webhook"
    GOOGLE_DRIVE = "google-drive"


# Tags seen in the wild, mapped to their canonical source
DATA_SOURCE_ALIASES: dict[str, DataSource] = {
    "zoom-api": DataSource.ZOOM_API,
    "zoom": DataSource.ZOOM_API,
    "cloud-meeting": DataSource.ZOOM_API,
    "batch": DataSource.ZOOM_API,
    "webhook": DataSource.WEBHOOK,
    "google-drive": DataSource.GOOGLE_DRIVE,
    "google drive import": DataSource.GOOGLE_DRIVE,
    "cloud-drive": DataSource.GOOGLE_DRIVE,
    "drive": DataSource.GOOGLE_DRIVE,
}


def normalize_data_source(tag: str) -> str:
    """Map a raw data source tag to its canonical form.

    Unknown tags are returned lowercased and trimmed so they still get a
    partition of their own.
    """
    cleaned = " ".join((tag or "").split()).lower()
    source = DATA_SOURCE_ALIASES.get(cleaned)
    if source is not None:
        return source.value
    return cleaned or "unknown"


class Participant(BaseModel):
    """A meeting participant as reported by the meeting platform."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(default="", description="Display name")
    email: str | None = Field(default=None, description="Email if reported")
    is_host: bool = Field(default=False)


class SourceFile(BaseModel):
    """A file attached to the recording (video, audio, transcript, chat)."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(description="File name, possibly including extension")
    size_bytes: int = Field(default=0, ge=0)
    file_id: str | None = Field(
        default=None,
        description="Storage ID at the source; a Drive file ID for Drive imports",
    )

    @property
    def stem(self) -> str:
        """File name without its extension."""
        head, dot, _ext = self.name.rpartition(".")
        return head if dot and head else self.name

    @property
    def extension(self) -> str:
        """Lowercase extension including the dot, or empty string."""
        head, dot, ext = self.name.rpartition(".")
        return f".{ext.lower()}" if dot and head else ""


class RawRecordingEvent(BaseModel):
    """Immutable input describing one recording from one upstream source.

    Only ``external_id`` and ``data_source_tag`` are needed to build the
    event; everything else may be missing and simply lowers confidence.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    external_id: str | None = Field(default=None, description="Upstream ID")
    topic: str = Field(default="", description="Free-text meeting topic")
    start_time: datetime | None = Field(default=None)
    duration_seconds: int = Field(default=0, ge=0)
    host_identity: str | None = Field(
        default=None, description="Host email or display name"
    )
    participants: tuple[Participant, ...] = Field(default_factory=tuple)
    source_files: tuple[SourceFile, ...] = Field(default_factory=tuple)
    data_source_tag: str = Field(default=DataSource.ZOOM_API.value)

    @field_validator("start_time")
    @classmethod
    def ensure_aware(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def data_source(self) -> str:
        """Canonical data source tag."""
        return normalize_data_source(self.data_source_tag)

    @property
    def participant_count(self) -> int:
        """Unique participants, identified by email and falling back to name."""
        seen: set[str] = set()
        for participant in self.participants:
            identifier = participant.email or participant.name
            if identifier:
                seen.add(identifier.lower())
        return len(seen)

    @property
    def host(self) -> str | None:
        """Host identity, falling back to the participant flagged as host."""
        if self.host_identity:
            return self.host_identity
        for participant in self.participants:
            if participant.is_host:
                return participant.email or participant.name or None
        return None

    @property
    def total_size_bytes(self) -> int:
        return sum(f.size_bytes for f in self.source_files)

    def missing_fields(self) -> list[str]:
        """Fields a well-formed event should carry but this one lacks."""
        missing = []
        if not self.external_id:
            missing.append("external_id")
        if self.start_time is None:
            missing.append("start_time")
        if not self.topic:
            missing.append("topic")
        if not self.participants and not self.source_files:
            missing.append("participants_or_files")
        return missing

    @classmethod
    def from_zoom_payload(
        cls, payload: dict[str, Any], data_source_tag: str = "zoom-api"
    ) -> "RawRecordingEvent":
        """Build an event from a Zoom cloud recording JSON object.

        Accepts both the API listing shape and the webhook ``object`` shape.
        Zoom reports ``duration`` in minutes.

        Args:
            payload: Recording object (``uuid``, ``topic``, ``start_time``...)
            data_source_tag: Tag of the collaborator that produced it

        Returns:
            RawRecordingEvent built from the payload
        """
        participants = []
        for item in payload.get("participants") or []:
            participants.append(
                Participant(
                    name=item.get("user_name") or item.get("name") or "",
                    email=item.get("user_email") or item.get("email") or None,
                    is_host=bool(item.get("is_host", False)),
                )
            )

        files = []
        for index, item in enumerate(payload.get("recording_files") or []):
            name = item.get("file_name") or (
                f"{item.get('recording_type') or 'recording'}_{index}."
                f"{(item.get('file_extension') or item.get('file_type') or 'bin').lower()}"
            )
            files.append(
                SourceFile(
                    name=name,
                    size_bytes=int(item.get("file_size") or 0),
                    file_id=item.get("id"),
                )
            )

        external_id = payload.get("uuid") or payload.get("id")
        return cls(
            external_id=str(external_id) if external_id is not None else None,
            topic=payload.get("topic") or "",
            start_time=payload.get("start_time") or None,
            duration_seconds=int(payload.get("duration") or 0) * 60,
            host_identity=payload.get("host_email") or payload.get("host_name"),
            participants=tuple(participants),
            source_files=tuple(files),
            data_source_tag=data_source_tag,
        )
