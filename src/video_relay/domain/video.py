"""Domain models for resolved video metadata and buffered downloads.

These models define the response payloads of the metadata endpoint and the
callable flows. Field names are camelCase because they are the wire schema.
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class VideoFormatOption(BaseModel):
    """A combined video+audio encoding offered for download."""

    itag: str = Field(description="Provider selector token (yt-dlp format_id)")
    qualityLabel: str = Field(description="Human-readable quality, e.g., 720p")


class AudioFormatOption(BaseModel):
    """An audio-only encoding offered for download."""

    itag: str = Field(description="Provider selector token (yt-dlp format_id)")
    audioBitrate: int = Field(default=0, description="Audio bitrate in kbps; 0 when unknown")


class FormatOptions(BaseModel):
    """Format options grouped by output kind, in provider order."""

    mp4: list[VideoFormatOption] = Field(default_factory=list)
    mp3: list[AudioFormatOption] = Field(default_factory=list)


class VideoSummary(BaseModel):
    """Metadata returned for a resolved video.

    Notes
    -----
    - ``duration`` is ``HH:MM:SS`` and wraps after 24 hours.
    - ``thumbnail`` is the last entry of the provider's thumbnail list, which
      yt-dlp orders from lowest to highest preference.
    """

    title: str = Field(description="Video title")
    thumbnail: str = Field(description="Highest-resolution thumbnail URL")
    duration: str = Field(description="Duration formatted as HH:MM:SS")
    formats: FormatOptions = Field(default_factory=FormatOptions)


class DownloadResult(BaseModel):
    """A fully buffered download encoded as a data URI."""

    dataUri: str = Field(description="data:<mime>;base64,<payload>")
    filename: str = Field(description="Sanitized title plus extension")
