"""Stream relay: re-resolve a video, pick the requested encoding, and relay its bytes.

Two operating modes exist and are not interchangeable:

- ``StreamingRelay`` hands back a lazy byte iterator. Each chunk is read from
  the provider only when the HTTP layer is ready to write it, so a slow client
  slows the upstream read instead of growing a buffer.
- ``BufferedRelay`` reads the whole file into memory and returns it as a
  base64 data URI. Memory grows with the file size; use it for small media only.
"""
from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Protocol, Union

from video_relay.core.errors import SelectionError, UpstreamFetchError
from video_relay.domain.requests import DownloadRequest, FilterMode
from video_relay.domain.video import DownloadResult

logger = logging.getLogger(__name__)

_UNSAFE_TITLE_CHARS = re.compile(r"[^a-zA-Z0-9\s]")
_WHITESPACE = re.compile(r"\s")


class RelayProvider(Protocol):
    """What the relay needs from a provider."""

    async def fetch_info(self, url: str) -> dict[str, Any]: ...

    def choose_format(self, formats: list[dict[str, Any]], mode: FilterMode, quality: str) -> dict[str, Any]: ...

    async def open_stream(self, descriptor: dict[str, Any]) -> AsyncIterator[bytes]: ...


class RelayMode(str, Enum):
    """Operating mode of the relay."""

    STREAMING = "streaming"
    BUFFERED = "buffered"


def sanitize_title(title: str) -> str:
    """Drop every character that is not an ASCII letter, digit, or whitespace.

    Notes
    -----
    - ``"Lo-Fi Beats #1 (Live)!"`` becomes ``"LoFi Beats 1 Live"``.
    - Every whitespace character (tabs, U+3000 ideographic space, ...) becomes a
      plain space so the filename stays encodable as a Latin-1 header value.
    - An empty result becomes ``"download"`` so the filename never starts with a dot.
    """

    cleaned: str = _WHITESPACE.sub(" ", _UNSAFE_TITLE_CHARS.sub("", title)).strip()
    return cleaned or "download"


def content_disposition(filename: str) -> str:
    return f'attachment; filename="{filename}"'


@dataclass
class PreparedDownload:
    """Everything known about a download before its bytes are requested."""

    filename: str
    media_type: str
    descriptor: dict[str, Any]

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Disposition": content_disposition(self.filename),
            "Content-Type": self.media_type,
        }


@dataclass
class RelayedStream:
    """Framing headers plus the lazily read body of a streaming relay."""

    filename: str
    media_type: str
    body: AsyncIterator[bytes]
    headers: dict[str, str] = field(default_factory=dict)


async def prepare_download(provider: RelayProvider, request: DownloadRequest) -> PreparedDownload:
    """Re-fetch video info and select the requested encoding.

    Notes
    -----
    - Video info is always fetched again; nothing from a previous metadata call is reused.
    - The quality token is checked against the descriptor list here, before any
      byte stream is opened, so an unknown token never fails mid-response.

    Raises
    ------
    UpstreamFetchError
        If the provider cannot return video info.
    SelectionError
        If the quality token matches no encoding of the requested kind.
    """

    info: dict[str, Any] = await provider.fetch_info(request.url)
    kind = request.format
    filename: str = f"{sanitize_title(str(info.get('title') or ''))}.{kind.extension}"
    descriptor: dict[str, Any] = provider.choose_format(
        list(info.get("formats") or []), kind.filter_mode, request.quality
    )
    logger.info(
        "Selected format %s for %s download (quality=%s)",
        descriptor.get("format_id"),
        kind.value,
        request.quality,
        extra={"video_url": request.url},
    )
    return PreparedDownload(filename=filename, media_type=kind.media_type, descriptor=descriptor)


class StreamingRelay:
    """Relay the selected encoding as an unbuffered byte stream."""

    mode: RelayMode = RelayMode.STREAMING

    def __init__(self, provider: RelayProvider) -> None:
        self._provider: RelayProvider = provider

    async def relay(self, request: DownloadRequest) -> RelayedStream:
        """Prepare the download and open its upstream stream.

        Raises
        ------
        UpstreamFetchError, SelectionError
            See ``prepare_download``; also raised when the stream cannot be opened.
        """

        try:
            prepared: PreparedDownload = await prepare_download(self._provider, request)
            body: AsyncIterator[bytes] = await self._provider.open_stream(prepared.descriptor)
        except SelectionError as ex:
            logger.warning("Streaming relay rejected selection: %s", ex.message, extra={"video_url": request.url})
            raise
        except UpstreamFetchError as ex:
            logger.error("Streaming relay failed: %s", ex.message, extra={"video_url": request.url})
            raise
        return RelayedStream(
            filename=prepared.filename,
            media_type=prepared.media_type,
            body=body,
            headers=prepared.headers,
        )


class BufferedRelay:
    """Read the selected encoding fully into memory and return it as a data URI.

    Notes
    -----
    - No size cap: the whole payload is held for the duration of the call.
    """

    mode: RelayMode = RelayMode.BUFFERED

    def __init__(self, provider: RelayProvider) -> None:
        self._provider: RelayProvider = provider

    async def relay(self, request: DownloadRequest) -> DownloadResult:
        try:
            prepared: PreparedDownload = await prepare_download(self._provider, request)
            body: AsyncIterator[bytes] = await self._provider.open_stream(prepared.descriptor)
            chunks: list[bytes] = [chunk async for chunk in body]
        except SelectionError as ex:
            logger.warning("Buffered relay rejected selection: %s", ex.message, extra={"video_url": request.url})
            raise
        except UpstreamFetchError as ex:
            logger.error("Buffered relay failed: %s", ex.message, extra={"video_url": request.url})
            raise

        payload: bytes = b"".join(chunks)
        logger.info("Buffered %d bytes for %s", len(payload), prepared.filename, extra={"video_url": request.url})
        encoded: str = base64.b64encode(payload).decode("ascii")
        return DownloadResult(dataUri=f"data:{prepared.media_type};base64,{encoded}", filename=prepared.filename)


Relay = Union[StreamingRelay, BufferedRelay]


def build_relay(mode: RelayMode, provider: RelayProvider) -> Relay:
    """Return the relay implementation for ``mode``."""

    if mode is RelayMode.BUFFERED:
        return BufferedRelay(provider)
    return StreamingRelay(provider)
