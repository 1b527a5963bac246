"""Integration tests for the HTTP API.

These tests exercise the FastAPI app in-memory using TestClient with the
provider dependency overridden, so no network access is needed.
"""
from __future__ import annotations

import sys
import unittest
from pathlib import Path
from typing import Any

# Ensure the src/ path is importable for the tests
_PROJECT_ROOT: Path = Path(__file__).resolve().parents[1]
_SRC_PATH: Path = _PROJECT_ROOT / "src"
if str(_SRC_PATH) not in sys.path:
    sys.path.insert(0, str(_SRC_PATH))

from fastapi.testclient import TestClient  # type: ignore  # imported after sys.path tweak

from video_relay.api.http import DOWNLOAD_FAILED_MESSAGE, INFO_FAILED_MESSAGE, get_provider
from video_relay.core.config import get_settings
from video_relay.core.errors import UpstreamFetchError
from video_relay.main import create_app

from fakes import FakeProvider, sample_info

URL: str = "https://www.youtube.com/watch?v=abc123"


class TestApi(unittest.TestCase):
    """Metadata and download endpoints."""

    def setUp(self) -> None:
        get_settings.cache_clear()  # type: ignore[attr-defined]
        self.app = create_app()
        self.provider: FakeProvider = FakeProvider()
        self.app.dependency_overrides[get_provider] = lambda: self.provider
        self.client: TestClient = TestClient(self.app)

    def tearDown(self) -> None:
        self.client.close()

    def test_health_endpoint(self) -> None:
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_post_returns_summary(self) -> None:
        resp = self.client.post("/api/youtube", json={"url": URL})
        self.assertEqual(resp.status_code, 200, msg=resp.text)
        data: dict[str, Any] = resp.json()
        self.assertEqual(data["title"], "Lo-Fi Beats #1 (Live)!")
        self.assertEqual(data["duration"], "02:34:12")
        self.assertTrue(data["thumbnail"].endswith("maxresdefault.jpg"))
        self.assertEqual(data["formats"]["mp4"], [{"itag": "1", "qualityLabel": "720p"}])
        self.assertEqual(
            data["formats"]["mp3"],
            [{"itag": "10", "audioBitrate": 128}, {"itag": "11", "audioBitrate": 0}],
        )

    def test_post_rejects_invalid_url_without_provider_call(self) -> None:
        for body in ({"url": "notaurl"}, {}, {"url": "https://example.com/v"}):
            with self.subTest(body=body):
                resp = self.client.post("/api/youtube", json=body)
                self.assertEqual(resp.status_code, 400)
                self.assertIn("message", resp.json())
        self.assertEqual(self.provider.calls, 0)

    def test_post_rejects_malformed_json(self) -> None:
        resp = self.client.post(
            "/api/youtube", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"message": "Invalid input."})

    def test_post_upstream_failure_is_500(self) -> None:
        self.provider.error = UpstreamFetchError("Video unavailable")
        resp = self.client.post("/api/youtube", json={"url": URL})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"message": INFO_FAILED_MESSAGE})

    def test_download_mp4_stream(self) -> None:
        resp = self.client.get("/api/youtube", params={"url": URL, "format": "mp4", "quality": "1"})
        self.assertEqual(resp.status_code, 200, msg=resp.text)
        self.assertEqual(resp.headers["content-type"], "video/mp4")
        self.assertEqual(resp.headers["content-disposition"], 'attachment; filename="LoFi Beats 1 Live.mp4"')
        self.assertEqual(resp.content, b"media:1")

    def test_download_mp3_stream(self) -> None:
        resp = self.client.get("/api/youtube", params={"url": URL, "format": "mp3", "quality": "10"})
        self.assertEqual(resp.status_code, 200, msg=resp.text)
        self.assertEqual(resp.headers["content-type"], "audio/mpeg")
        self.assertEqual(resp.headers["content-disposition"], 'attachment; filename="LoFi Beats 1 Live.mp3"')
        self.assertEqual(resp.content, b"media:10")

    def test_download_title_with_ideographic_space(self) -> None:
        """A title with U+3000 still yields a Latin-1 safe Content-Disposition."""
        info = sample_info()
        info["title"] = "Lofi\u3000Mix 2024"
        self.provider.info = info
        resp = self.client.get("/api/youtube", params={"url": URL, "format": "mp4", "quality": "1"})
        self.assertEqual(resp.status_code, 200, msg=resp.text)
        self.assertEqual(resp.headers["content-disposition"], 'attachment; filename="Lofi Mix 2024.mp4"')
        self.assertEqual(resp.content, b"media:1")

    def test_download_rejects_bad_params_without_provider_call(self) -> None:
        cases: list[dict[str, str]] = [
            {"url": "notaurl", "format": "mp4", "quality": "1"},
            {"url": URL, "format": "avi", "quality": "1"},
            {"url": URL, "format": "mp4"},
            {"url": URL, "format": "mp4", "quality": ""},
            {"format": "mp4", "quality": "1"},
        ]
        for params in cases:
            with self.subTest(params=params):
                resp = self.client.get("/api/youtube", params=params)
                self.assertEqual(resp.status_code, 400)
                self.assertIn("message", resp.json())
        self.assertEqual(self.provider.calls, 0)

    def test_download_unknown_quality_is_400_before_streaming(self) -> None:
        resp = self.client.get("/api/youtube", params={"url": URL, "format": "mp4", "quality": "999"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("999", resp.json()["message"])
        self.assertEqual(self.provider.opened, [])

    def test_download_upstream_failure_is_500(self) -> None:
        info = sample_info()
        info["formats"][3]["url"] = "https://media.example/forbidden"
        self.provider.info = info
        resp = self.client.get("/api/youtube", params={"url": URL, "format": "mp3", "quality": "10"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"message": DOWNLOAD_FAILED_MESSAGE})


if __name__ == "__main__":
    unittest.main()
