"""yt-dlp backed video-info provider with an httpx byte-stream reader.

This is the only module that talks to yt-dlp or opens upstream HTTP
connections. yt-dlp and httpx exceptions are translated to
``UpstreamFetchError`` here; an unknown quality token raises ``SelectionError``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional

import httpx
from yt_dlp import YoutubeDL

from video_relay.core.config import Settings
from video_relay.core.errors import SelectionError, UpstreamFetchError
from video_relay.domain.requests import FilterMode

logger = logging.getLogger(__name__)

# Protocols whose descriptor ``url`` is the media file itself; manifests and
# fragmented protocols need yt-dlp's own downloader and cannot be piped.
DIRECT_PROTOCOLS: frozenset[str] = frozenset({"http", "https"})

HIGHEST_TOKENS: frozenset[str] = frozenset({"highest", "highestvideo", "highestaudio"})
LOWEST_TOKENS: frozenset[str] = frozenset({"lowest", "lowestvideo", "lowestaudio"})


def _has_track(codec: Optional[str]) -> bool:
    """yt-dlp reports a missing track as the literal string ``"none"``."""

    return bool(codec) and codec != "none"


def quality_label(fmt: dict[str, Any]) -> Optional[str]:
    """Build a human-readable quality label such as ``"720p"``.

    Notes
    -----
    - Returns ``None`` when ``height`` is unknown; such descriptors are not
      offered as video options.
    """

    height = fmt.get("height")
    return f"{height}p" if height else None


def _is_direct(fmt: dict[str, Any]) -> bool:
    protocol: str = str(fmt.get("protocol") or "https")
    return protocol in DIRECT_PROTOCOLS


def filter_formats(formats: list[dict[str, Any]], mode: FilterMode) -> list[dict[str, Any]]:
    """Classify descriptors the way the provider exposes them.

    Notes
    -----
    - ``videoandaudio`` keeps formats carrying both tracks; ``audioonly`` keeps
      formats with an audio track and no video track.
    - Only directly fetchable formats are kept, so everything offered can be relayed.
    - Provider order is preserved.
    """

    result: list[dict[str, Any]] = []
    for fmt in formats:
        if not _is_direct(fmt):
            continue
        has_video: bool = _has_track(fmt.get("vcodec"))
        has_audio: bool = _has_track(fmt.get("acodec"))
        if mode is FilterMode.VIDEO_AND_AUDIO and has_video and has_audio:
            result.append(fmt)
        elif mode is FilterMode.AUDIO_ONLY and has_audio and not has_video:
            result.append(fmt)
    return result


def _rank(fmt: dict[str, Any]) -> tuple[int, float, float]:
    height: int = int(fmt.get("height") or 0)
    fps: float = float(fmt.get("fps") or 0.0)
    bitrate: float = float(fmt.get("tbr") or fmt.get("abr") or 0.0)
    return (height, fps, bitrate)


def choose_format(formats: list[dict[str, Any]], mode: FilterMode, quality: str) -> dict[str, Any]:
    """Pick the descriptor a quality token refers to.

    Parameters
    ----------
    formats: list[dict[str, Any]]
        All descriptors of the video as returned by ``fetch_info``.
    mode: FilterMode
        Pool to select from.
    quality: str
        A default token (``highest``, ``lowest``, ``highestvideo``,
        ``highestaudio``, ``lowestvideo``, ``lowestaudio``), a ``format_id``,
        or a quality label like ``720p``.

    Raises
    ------
    SelectionError
        If the token matches nothing in the pool.
    """

    pool: list[dict[str, Any]] = filter_formats(formats, mode)
    if not pool:
        raise SelectionError(f"No {mode.value} encodings are available for this video")

    token: str = quality.strip()
    if token in HIGHEST_TOKENS:
        return max(pool, key=_rank)
    if token in LOWEST_TOKENS:
        return min(pool, key=_rank)

    for fmt in pool:
        if str(fmt.get("format_id")) == token:
            return fmt
    if mode is FilterMode.VIDEO_AND_AUDIO:
        for fmt in pool:
            if quality_label(fmt) == token:
                return fmt

    raise SelectionError(f"Requested quality {token!r} is not available for this video")


class YtDlpProvider:
    """Video-info provider backed by the yt-dlp Python API.

    Parameters
    ----------
    settings: Settings
        Supplies chunk size and the upstream timeout.
    transport: httpx.AsyncBaseTransport | None
        Optional transport for the byte-stream client; tests pass an
        ``httpx.MockTransport``.

    Notes
    -----
    - Instances hold no per-video state; one is created per request.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._settings: Settings = settings
        self._transport: Optional[httpx.AsyncBaseTransport] = transport

    @staticmethod
    def _build_opts() -> dict[str, Any]:
        return {
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "skip_download": True,
        }

    def _extract(self, url: str) -> dict[str, Any]:
        with YoutubeDL(self._build_opts()) as ydl:
            info: Any = ydl.extract_info(url, download=False)
        if not isinstance(info, dict):
            raise UpstreamFetchError("yt-dlp returned no metadata for the given URL")
        return dict(info)

    async def fetch_info(self, url: str) -> dict[str, Any]:
        """Extract video info without downloading.

        Notes
        -----
        - yt-dlp blocks, so extraction runs in a worker thread.
        - No retries: the first failure is reported.

        Raises
        ------
        UpstreamFetchError
            On network errors and unavailable, private, or restricted videos.
        """

        try:
            return await asyncio.to_thread(self._extract, url)
        except UpstreamFetchError:
            raise
        except Exception as ex:  # noqa: BLE001 - yt-dlp raises a wide range of types
            raise UpstreamFetchError(f"Could not fetch video info: {ex}") from ex

    def filter_formats(self, formats: list[dict[str, Any]], mode: FilterMode) -> list[dict[str, Any]]:
        return filter_formats(formats, mode)

    def choose_format(self, formats: list[dict[str, Any]], mode: FilterMode, quality: str) -> dict[str, Any]:
        return choose_format(formats, mode, quality)

    def _client(self) -> httpx.AsyncClient:
        timeout: httpx.Timeout = httpx.Timeout(self._settings.upstream_timeout)
        return httpx.AsyncClient(transport=self._transport, timeout=timeout, follow_redirects=True)

    async def open_stream(self, descriptor: dict[str, Any]) -> AsyncIterator[bytes]:
        """Open the byte stream of one descriptor.

        Returns
        -------
        AsyncIterator[bytes]
            Chunks of ``settings.chunk_size`` bytes. Each chunk is read from the
            upstream only when the consumer asks for it.

        Notes
        -----
        - The upstream status is checked before returning, so a refused request
          fails here rather than after response headers have been sent.
        - The connection is closed when the iterator is exhausted, fails, or is
          closed by the consumer.

        Raises
        ------
        UpstreamFetchError
            If the descriptor has no URL or the upstream request fails.
        """

        media_url: Optional[str] = descriptor.get("url")
        if not media_url:
            raise UpstreamFetchError(f"Format {descriptor.get('format_id')!r} has no media URL")

        headers: dict[str, str] = dict(descriptor.get("http_headers") or {})
        client: httpx.AsyncClient = self._client()
        response: Optional[httpx.Response] = None
        try:
            request: httpx.Request = client.build_request("GET", media_url, headers=headers)
            response = await client.send(request, stream=True)
            response.raise_for_status()
        except httpx.HTTPError as ex:
            if response is not None:
                await response.aclose()
            await client.aclose()
            raise UpstreamFetchError(f"Upstream stream request failed: {ex}") from ex

        return self._iter_body(client, response)

    async def _iter_body(self, client: httpx.AsyncClient, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes(self._settings.chunk_size):
                yield chunk
        except httpx.HTTPError as ex:
            logger.error("Upstream stream interrupted: %s", ex)
            raise UpstreamFetchError(f"Upstream stream interrupted: {ex}") from ex
        finally:
            await response.aclose()
            await client.aclose()
