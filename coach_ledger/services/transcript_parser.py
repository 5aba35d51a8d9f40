"""Transcript parser service for VTT and SRT files.

Week inference only needs the spoken text, so captions are flattened into
one string; speaker names and timing are kept for logging.
"""

from dataclasses import dataclass
from io import StringIO

import webvtt


@dataclass
class ParsedTranscript:
    """Result of flattening a transcript file."""

    text: str
    speakers: list[str]
    caption_count: int
    duration_seconds: float | None


class TranscriptParser:
    """Flatten VTT, SRT and plain-text transcripts."""

    SUPPORTED_FORMATS = {".vtt", ".srt", ".txt"}

    def parse(self, content: str, format: str) -> ParsedTranscript:
        """Parse transcript content into flat text.

        Args:
            content: Raw transcript file content (UTF-8 decoded)
            format: File extension (".vtt", ".srt" or ".txt")

        Returns:
            ParsedTranscript with text, speakers and duration

        Raises:
            ValueError: If format is unsupported
            webvtt.errors.MalformedFileError: If content is malformed
        """
        if format not in self.SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported format: {format}")

        content_stripped = content.strip()
        if not content_stripped or content_stripped == "WEBVTT":
            return ParsedTranscript(
                text="", speakers=[], caption_count=0, duration_seconds=None
            )
        if format == ".txt":
            return ParsedTranscript(
                text=" ".join(content_stripped.split()),
                speakers=[],
                caption_count=0,
                duration_seconds=None,
            )

        # webvtt expects "vtt" not ".vtt"
        captions = webvtt.from_buffer(StringIO(content), format=format.lstrip("."))

        lines: list[str] = []
        speakers: set[str] = set()
        end_time = None
        for caption in captions:
            if caption.voice:
                speakers.add(caption.voice)
            if caption.text.strip():
                lines.append(" ".join(caption.text.split()))
            end_time = caption.end_in_seconds

        return ParsedTranscript(
            text="\n".join(lines),
            speakers=sorted(speakers),
            caption_count=len(lines),
            duration_seconds=end_time,
        )
