"""HTTP API routes for the video relay service."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from video_relay.core.config import Settings, get_settings
from video_relay.core.errors import InvalidInput, SelectionError, UpstreamFetchError
from video_relay.domain.requests import parse_download_request, parse_info_request
from video_relay.domain.video import VideoSummary
from video_relay.infra.ytdlp import YtDlpProvider
from video_relay.services.relay import RelayedStream, StreamingRelay
from video_relay.services.resolver import FormatResolver

logger = logging.getLogger(__name__)

router: APIRouter = APIRouter(prefix="/api", tags=["api"])

INFO_FAILED_MESSAGE: str = "Could not fetch video details. Please check the URL and try again."
DOWNLOAD_FAILED_MESSAGE: str = "An error occurred during the download process. Please try again."


def get_provider(settings: Settings = Depends(get_settings)) -> YtDlpProvider:
    """Build a provider per request; overridden in tests."""

    return YtDlpProvider(settings)


@router.post("/youtube", response_model=VideoSummary)
async def post_youtube(
    payload: Any = Body(default=None),
    settings: Settings = Depends(get_settings),
    provider: YtDlpProvider = Depends(get_provider),
) -> VideoSummary:
    """Resolve a video URL to its metadata and downloadable formats.

    Parameters
    ----------
    payload: Any
        JSON body ``{"url": str}``.

    Returns
    -------
    VideoSummary
        Title, thumbnail, duration, and the ``mp4``/``mp3`` format options.

    Raises
    ------
    HTTPException
        400 for a missing or invalid URL; 500 when the provider fails.
    """

    try:
        request = parse_info_request(payload, settings)
    except InvalidInput as ex:
        logger.warning("Rejected metadata request: %s", ex.message)
        raise HTTPException(status_code=400, detail=ex.message) from ex

    resolver = FormatResolver(provider, settings.target_container)
    try:
        return await resolver.resolve(request.url)
    except UpstreamFetchError as ex:
        raise HTTPException(status_code=500, detail=INFO_FAILED_MESSAGE) from ex


@router.get("/youtube")
async def get_youtube(
    url: Optional[str] = Query(default=None),
    fmt: Optional[str] = Query(default=None, alias="format"),
    quality: Optional[str] = Query(default=None),
    settings: Settings = Depends(get_settings),
    provider: YtDlpProvider = Depends(get_provider),
) -> StreamingResponse:
    """Stream the selected encoding as a file download.

    Notes
    -----
    - ``format`` is ``mp4`` or ``mp3``; ``quality`` is a format ``itag`` from
      ``POST /api/youtube``, a quality label, or a default token such as ``highestvideo``.
    - The quality token is checked before the response starts, so an unknown
      token is a 400 and never a truncated body.
    - The body is read from the provider as the client consumes it.

    Raises
    ------
    HTTPException
        400 for invalid parameters or an unavailable quality; 500 on provider failure.
    """

    try:
        request = parse_download_request({"url": url, "format": fmt, "quality": quality}, settings)
    except InvalidInput as ex:
        logger.warning("Rejected download request: %s", ex.message)
        raise HTTPException(status_code=400, detail=ex.message) from ex

    try:
        stream: RelayedStream = await StreamingRelay(provider).relay(request)
    except SelectionError as ex:
        raise HTTPException(status_code=400, detail=ex.message) from ex
    except UpstreamFetchError as ex:
        raise HTTPException(status_code=500, detail=DOWNLOAD_FAILED_MESSAGE) from ex

    return StreamingResponse(
        stream.body,
        media_type=stream.media_type,
        headers={"Content-Disposition": stream.headers["Content-Disposition"]},
    )
