"""Error taxonomy shared by the resolver, relay, and transport adapters.

Raw yt-dlp and httpx exceptions are translated into these types inside
``infra.ytdlp`` and chained with ``raise ... from``. HTTP routes map them to
status codes; the callable flows let them propagate to the caller.
"""
from __future__ import annotations


class VideoRelayError(Exception):
    """Base class for all domain errors.

    Notes
    -----
    - ``status_code`` is the HTTP status a transport adapter should use.
    - ``message`` is safe to log; routes may substitute a generic public message.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message: str = message


class InvalidInput(VideoRelayError):
    """Malformed or missing URL, unknown format token, or missing quality token."""

    status_code = 400


class UpstreamFetchError(VideoRelayError):
    """The provider could not return video info or a byte stream."""

    status_code = 500


class SelectionError(VideoRelayError):
    """The requested quality token matches none of the video's encodings."""

    status_code = 400
