"""Format resolver: turn provider video info into a ``VideoSummary``."""
from __future__ import annotations

import logging
import time
from typing import Any, Optional, Protocol

from video_relay.core.errors import UpstreamFetchError
from video_relay.domain.requests import FilterMode
from video_relay.domain.video import AudioFormatOption, FormatOptions, VideoFormatOption, VideoSummary
from video_relay.infra.ytdlp import quality_label

logger = logging.getLogger(__name__)


class VideoInfoProvider(Protocol):
    """What the resolver and relay need from a provider."""

    async def fetch_info(self, url: str) -> dict[str, Any]: ...

    def filter_formats(self, formats: list[dict[str, Any]], mode: FilterMode) -> list[dict[str, Any]]: ...


def format_duration(seconds: Optional[float]) -> str:
    """Format a length in seconds as ``HH:MM:SS``.

    Notes
    -----
    - Formats the seconds as a UTC time of day after the epoch, so lengths of
      24 hours or more wrap around (``90000`` gives ``"01:00:00"``).
    - ``None`` (live streams, unknown length) gives ``"00:00:00"``.
    """

    total: int = int(seconds) if seconds else 0
    return time.strftime("%H:%M:%S", time.gmtime(total))


def pick_thumbnail(info: dict[str, Any]) -> str:
    """Return the last (highest-resolution) thumbnail URL.

    Notes
    -----
    - Relies on the provider listing thumbnails from smallest to largest; this
      is not checked.
    - Falls back to the single ``thumbnail`` field.

    Raises
    ------
    UpstreamFetchError
        When the provider reports no thumbnail at all.
    """

    thumbnails: list[dict[str, Any]] = [t for t in info.get("thumbnails") or [] if t.get("url")]
    if thumbnails:
        return str(thumbnails[-1]["url"])
    fallback: Optional[str] = info.get("thumbnail")
    if fallback:
        return fallback
    raise UpstreamFetchError("Provider returned no thumbnail")


def video_options(pool: list[dict[str, Any]], container: str) -> list[VideoFormatOption]:
    """Keep combined encodings in ``container`` that carry a quality label."""

    options: list[VideoFormatOption] = []
    for fmt in pool:
        label: Optional[str] = quality_label(fmt)
        if fmt.get("ext") != container or not label:
            continue
        options.append(VideoFormatOption(itag=str(fmt.get("format_id")), qualityLabel=label))
    return options


def audio_options(pool: list[dict[str, Any]]) -> list[AudioFormatOption]:
    """Map every audio-only encoding; a missing bitrate becomes 0."""

    return [
        AudioFormatOption(itag=str(fmt.get("format_id")), audioBitrate=round(fmt.get("abr") or 0))
        for fmt in pool
    ]


class FormatResolver:
    """Resolve a video URL to its title, thumbnail, duration and format options.

    Parameters
    ----------
    provider: VideoInfoProvider
        Source of video info and of the combined/audio-only classification.
    target_container: str
        Container tag kept in the combined list.

    Notes
    -----
    - Resolution is all-or-nothing and never retried.
    - Provider ordering is preserved in both lists.
    """

    def __init__(self, provider: VideoInfoProvider, target_container: str = "mp4") -> None:
        self._provider: VideoInfoProvider = provider
        self._container: str = target_container

    async def resolve(self, url: str) -> VideoSummary:
        """Fetch video info and build the summary.

        Raises
        ------
        UpstreamFetchError
            If the provider cannot return video info.
        """

        try:
            info: dict[str, Any] = await self._provider.fetch_info(url)
            formats: list[dict[str, Any]] = list(info.get("formats") or [])
            combined = self._provider.filter_formats(formats, FilterMode.VIDEO_AND_AUDIO)
            audio = self._provider.filter_formats(formats, FilterMode.AUDIO_ONLY)
            summary: VideoSummary = VideoSummary(
                title=str(info.get("title") or ""),
                thumbnail=pick_thumbnail(info),
                duration=format_duration(info.get("duration")),
                formats=FormatOptions(mp4=video_options(combined, self._container), mp3=audio_options(audio)),
            )
        except UpstreamFetchError as ex:
            logger.error("Video info resolution failed: %s", ex.message, extra={"video_url": url})
            raise

        logger.info(
            "Resolved %d video and %d audio formats",
            len(summary.formats.mp4),
            len(summary.formats.mp3),
            extra={"video_url": url},
        )
        return summary
