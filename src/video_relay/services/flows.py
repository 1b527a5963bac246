"""Callable flows: the metadata and download operations as plain async functions.

These return typed records instead of HTTP responses and are meant for
in-process callers. Downloads run in buffered mode and come back as a data URI.
"""
from __future__ import annotations

from typing import Optional

from video_relay.core.config import Settings, get_settings
from video_relay.domain.requests import parse_download_request, parse_info_request
from video_relay.domain.video import DownloadResult, VideoSummary
from video_relay.infra.ytdlp import YtDlpProvider
from video_relay.services.relay import BufferedRelay, RelayProvider
from video_relay.services.resolver import FormatResolver, VideoInfoProvider


async def get_video_info(
    url: str,
    provider: Optional[VideoInfoProvider] = None,
    settings: Optional[Settings] = None,
) -> VideoSummary:
    """Validate ``url`` and resolve its ``VideoSummary``.

    Raises
    ------
    InvalidInput
        If the URL fails validation; the provider is not called.
    UpstreamFetchError
        If the provider cannot return video info.
    """

    settings = settings or get_settings()
    request = parse_info_request({"url": url}, settings)
    resolver = FormatResolver(provider or YtDlpProvider(settings), settings.target_container)
    return await resolver.resolve(request.url)


async def download_video(
    url: str,
    format: str,
    quality: Optional[str] = None,
    provider: Optional[RelayProvider] = None,
    settings: Optional[Settings] = None,
) -> DownloadResult:
    """Validate the parameters and download the whole file as a data URI.

    Notes
    -----
    - A missing ``quality`` selects the best encoding of the requested kind.

    Raises
    ------
    InvalidInput, UpstreamFetchError, SelectionError
    """

    settings = settings or get_settings()
    request = parse_download_request(
        {"url": url, "format": format, "quality": quality},
        settings,
        quality_optional=True,
    )
    relay = BufferedRelay(provider or YtDlpProvider(settings))
    return await relay.relay(request)
