"""Unit tests for the format resolver."""
from __future__ import annotations

import asyncio
import unittest

from video_relay.core.errors import UpstreamFetchError
from video_relay.services.resolver import FormatResolver, format_duration, pick_thumbnail

from fakes import FakeProvider, sample_info

URL: str = "https://www.youtube.com/watch?v=abc123"


class TestFormatDuration(unittest.TestCase):
    """format_duration follows the epoch time-of-day rule."""

    def test_examples(self) -> None:
        self.assertEqual(format_duration(9252), "02:34:12")
        self.assertEqual(format_duration(59), "00:00:59")
        self.assertEqual(format_duration(3600), "01:00:00")
        self.assertEqual(format_duration(212.7), "00:03:32")

    def test_wraps_after_a_day(self) -> None:
        self.assertEqual(format_duration(90000), "01:00:00")

    def test_unknown_length(self) -> None:
        self.assertEqual(format_duration(None), "00:00:00")
        self.assertEqual(format_duration(0), "00:00:00")


class TestPickThumbnail(unittest.TestCase):
    """pick_thumbnail takes the last list entry."""

    def test_last_entry_wins(self) -> None:
        self.assertTrue(pick_thumbnail(sample_info()).endswith("maxresdefault.jpg"))

    def test_falls_back_to_single_thumbnail(self) -> None:
        self.assertEqual(pick_thumbnail({"thumbnails": [], "thumbnail": "https://t/x.jpg"}), "https://t/x.jpg")

    def test_no_thumbnail_fails(self) -> None:
        with self.assertRaises(UpstreamFetchError):
            pick_thumbnail({"thumbnails": [{"id": "0"}]})


class TestFormatResolver(unittest.IsolatedAsyncioTestCase):
    """End-to-end resolution against a fake provider."""

    async def test_summary_shape(self) -> None:
        provider = FakeProvider()
        summary = await FormatResolver(provider).resolve(URL)
        self.assertEqual(summary.title, "Lo-Fi Beats #1 (Live)!")
        self.assertEqual(summary.duration, "02:34:12")
        self.assertTrue(summary.thumbnail.endswith("maxresdefault.jpg"))
        self.assertEqual(provider.calls, 1)

    async def test_mp4_drops_wrong_container_and_missing_label(self) -> None:
        summary = await FormatResolver(FakeProvider()).resolve(URL)
        self.assertEqual(
            [o.model_dump() for o in summary.formats.mp4],
            [{"itag": "1", "qualityLabel": "720p"}],
        )

    async def test_mp3_defaults_missing_bitrate_to_zero(self) -> None:
        summary = await FormatResolver(FakeProvider()).resolve(URL)
        self.assertEqual(
            [o.model_dump() for o in summary.formats.mp3],
            [{"itag": "10", "audioBitrate": 128}, {"itag": "11", "audioBitrate": 0}],
        )

    async def test_provider_order_is_preserved(self) -> None:
        info = sample_info()
        info["formats"] = [
            {"format_id": "18", "ext": "mp4", "vcodec": "avc1", "acodec": "mp4a", "height": 360},
            {"format_id": "22", "ext": "mp4", "vcodec": "avc1", "acodec": "mp4a", "height": 720},
        ]
        summary = await FormatResolver(FakeProvider(info=info)).resolve(URL)
        self.assertEqual([o.itag for o in summary.formats.mp4], ["18", "22"])
        self.assertEqual(summary.formats.mp3, [])

    async def test_other_target_container(self) -> None:
        summary = await FormatResolver(FakeProvider(), target_container="webm").resolve(URL)
        self.assertEqual([o.itag for o in summary.formats.mp4], ["2"])

    async def test_upstream_failure_propagates_without_retry(self) -> None:
        provider = FakeProvider(error=UpstreamFetchError("Video unavailable"))
        with self.assertRaises(UpstreamFetchError):
            await FormatResolver(provider).resolve(URL)
        self.assertEqual(provider.calls, 1)

    async def test_concurrent_resolutions_are_independent(self) -> None:
        provider = FakeProvider()
        resolver = FormatResolver(provider)
        first, second = await asyncio.gather(resolver.resolve(URL), resolver.resolve(URL))
        self.assertEqual(provider.calls, 2)
        self.assertEqual(first, second)
        self.assertIsNot(first, second)
