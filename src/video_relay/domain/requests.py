"""Input validation for the metadata and download entry points.

Every entry point validates its own input; nothing here calls the provider.
Pydantic does the shape checks and its ``ValidationError`` is translated to
``InvalidInput`` so callers only deal with the domain taxonomy.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator

from video_relay.core.config import Settings
from video_relay.core.errors import InvalidInput


class FilterMode(str, Enum):
    """Provider-side classification of encodings."""

    VIDEO_AND_AUDIO = "videoandaudio"
    AUDIO_ONLY = "audioonly"


class FormatKind(str, Enum):
    """Output kinds a client can request.

    Notes
    -----
    - The Content-Type is fixed per kind and does not reflect the bytes actually
      relayed (an ``mp3`` request usually carries m4a or webm audio).
    """

    MP4 = "mp4"
    MP3 = "mp3"

    @property
    def filter_mode(self) -> FilterMode:
        return FilterMode.VIDEO_AND_AUDIO if self is FormatKind.MP4 else FilterMode.AUDIO_ONLY

    @property
    def extension(self) -> str:
        return self.value

    @property
    def media_type(self) -> str:
        return "video/mp4" if self is FormatKind.MP4 else "audio/mpeg"

    @property
    def default_quality(self) -> str:
        return "highestvideo" if self is FormatKind.MP4 else "highestaudio"


class InfoRequest(BaseModel):
    """Validated input of the metadata path."""

    url: str = Field(description="Video URL to resolve")


class DownloadRequest(BaseModel):
    """Validated input of the download path."""

    url: str = Field(description="Video URL to download")
    format: FormatKind = Field(description="Output kind: mp4 or mp3")
    quality: str = Field(description="Selector token, quality label, or default token")

    @field_validator("quality")
    @classmethod
    def _quality_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("quality must not be empty")
        return value


def _host_allowed(host: str, allowed_hosts: Sequence[str]) -> bool:
    """Return True when ``host`` equals or is a subdomain of an allowed host."""

    if not allowed_hosts:
        return True
    host = host.lower().rstrip(".")
    for allowed in allowed_hosts:
        allowed = allowed.lower()
        if host == allowed or host.endswith("." + allowed):
            return True
    return False


def validate_url(url: Any, allowed_hosts: Sequence[str] = ()) -> str:
    """Validate a video URL before any provider call.

    Notes
    -----
    - Accepts only absolute ``http``/``https`` URLs with a non-empty host.
    - When ``allowed_hosts`` is non-empty the host must match one of them.

    Raises
    ------
    InvalidInput
        If the URL is missing, malformed, or on an unsupported host.
    """

    if not isinstance(url, str) or not url.strip():
        raise InvalidInput("Invalid or missing video URL.")
    url = url.strip()
    try:
        parsed = urlparse(url)
        host: Optional[str] = parsed.hostname
    except ValueError as ex:
        raise InvalidInput("Invalid or missing video URL.") from ex
    if parsed.scheme not in {"http", "https"} or not host:
        raise InvalidInput("Invalid URL: only absolute http(s) URLs are supported.")
    if not _host_allowed(host, allowed_hosts):
        raise InvalidInput(f"Unsupported video host: {host}")
    return url


def _first_error(ex: ValidationError) -> str:
    errors = ex.errors()
    if not errors:
        return "Invalid input."
    err = errors[0]
    field = ".".join(str(p) for p in err.get("loc", ())) or "input"
    return f"Invalid {field}: {err.get('msg', 'invalid value')}"


def parse_info_request(payload: Optional[Mapping[str, Any]], settings: Settings) -> InfoRequest:
    """Validate the metadata request body.

    Raises
    ------
    InvalidInput
        If the body is missing or the URL fails validation.
    """

    if not isinstance(payload, Mapping):
        raise InvalidInput("Invalid or missing video URL.")
    url: str = validate_url(payload.get("url"), settings.allowed_hosts)
    return InfoRequest(url=url)


def parse_download_request(
    params: Mapping[str, Any],
    settings: Settings,
    *,
    quality_optional: bool = False,
) -> DownloadRequest:
    """Validate download parameters.

    Parameters
    ----------
    params: Mapping[str, Any]
        Raw ``url``, ``format`` and ``quality`` values (query string or call arguments).
    settings: Settings
        Provides the host allow-list.
    quality_optional: bool
        When True a missing or null ``quality`` is replaced by the format kind's
        default token. The HTTP path requires it; the callable flows do not.

    Raises
    ------
    InvalidInput
        On a bad URL, a format outside ``mp4``/``mp3``, or a missing quality token.
    """

    url: str = validate_url(params.get("url"), settings.allowed_hosts)
    fmt: Any = params.get("format")
    quality: Any = params.get("quality")

    if quality_optional and (quality is None or (isinstance(quality, str) and not quality.strip())):
        try:
            quality = FormatKind(fmt).default_quality
        except ValueError as ex:
            raise InvalidInput("Invalid format: expected 'mp4' or 'mp3'.") from ex

    try:
        return DownloadRequest(url=url, format=fmt, quality=quality)
    except ValidationError as ex:
        raise InvalidInput(_first_error(ex)) from ex
