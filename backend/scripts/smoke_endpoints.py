from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import backend.main as main_module
import backend.app.services.youtube_api as youtube_api


def iso_days_ago(days_ago: float) -> str:
    published = datetime.now(timezone.utc) - timedelta(days=days_ago)
    return published.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def make_video(video_id: str, channel_id: str, days_ago: float, views: int, duration: str = "PT10M") -> dict:
    return {
        "id": video_id,
        "snippet": {
            "title": f"Video {video_id}",
            "channelId": channel_id,
            "channelTitle": "Smoke Channel",
            "publishedAt": iso_days_ago(days_ago),
            "thumbnails": {
                "high": {"url": f"https://img/{video_id}.jpg", "width": 480, "height": 360},
                "maxres": {"url": f"https://img/{video_id}_max.jpg", "width": 1280, "height": 720},
            },
        },
        "statistics": {"viewCount": str(views)},
        "contentDetails": {"duration": duration},
    }


class FakeResponse:
    def __init__(self, status_code: int, payload: dict | None = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self) -> dict:
        return self._payload


class FakeUpstream:
    """Canned YouTube Data API keyed by endpoint URL."""

    def __init__(self, subscribers: int = 10_000, fail_with: int | None = None):
        self.subscribers = subscribers
        self.fail_with = fail_with
        self.calls: list[str] = []
        self.uploads = [make_video(f"up{i}", "UC_SMOKE", i + 1, 15_000 if i < 14 else 100) for i in range(15)]
        self.videos = {v["id"]: v for v in self.uploads}
        self.videos["hit1"] = make_video("hit1", "UC_SMOKE", 5, 200_000)

    def get(self, url: str, params: dict, timeout: int = 15) -> FakeResponse:
        _ = timeout
        self.calls.append(url)
        if params.get("key") != "AIzaSMOKE":
            return FakeResponse(400, text="keyInvalid")
        if self.fail_with:
            return FakeResponse(self.fail_with, text='{"error": {"errors": [{"reason": "quotaExceeded"}]}}')
        if url == youtube_api.YOUTUBE_SEARCH_LIST:
            return FakeResponse(200, {"items": [{"id": {"videoId": "hit1"}, "snippet": {"channelId": "UC_SMOKE"}}]})
        if url == youtube_api.YOUTUBE_VIDEOS_LIST:
            ids = params["id"].split(",")
            return FakeResponse(200, {"items": [self.videos[i] for i in ids if i in self.videos]})
        if url == youtube_api.YOUTUBE_CHANNELS_LIST:
            return FakeResponse(
                200,
                {
                    "items": [
                        {
                            "id": "UC_SMOKE",
                            "snippet": {"title": "Smoke Channel", "country": "us"},
                            "statistics": {"subscriberCount": str(self.subscribers), "hiddenSubscriberCount": False},
                            "contentDetails": {"relatedPlaylists": {"uploads": "UU_SMOKE"}},
                        }
                    ]
                },
            )
        if url == youtube_api.YOUTUBE_PLAYLIST_ITEMS_LIST:
            items = [
                {"contentDetails": {"videoId": v["id"], "videoPublishedAt": v["snippet"]["publishedAt"]}}
                for v in self.uploads
            ]
            return FakeResponse(200, {"items": items})
        return FakeResponse(404, text="not found")


def assert_true(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def make_client() -> TestClient:
    os.environ["YOUTUBE_API_KEY"] = "AIzaSMOKE"
    os.environ["YOUTUBE_PACING_SECONDS"] = "0"
    return TestClient(main_module.app, raise_server_exceptions=False)


def test_health() -> None:
    response = make_client().get("/health")
    assert_true(response.json().get("ok") is True, "/health should return ok=true")


def test_search_hit() -> None:
    upstream = FakeUpstream()
    with patch.object(youtube_api.requests, "get", side_effect=upstream.get):
        response = make_client().get("/api/search", params={"q": "marketing"})

    payload = response.json()
    assert_true(response.status_code == 200, f"/api/search returned {response.status_code}")
    assert_true(payload["meta"]["total"] == 1, "/api/search should keep the small-channel hit")
    item = payload["items"][0]
    assert_true(item["language"] == "en", "language should come from the US channel hint")
    assert_true(item["subscriberCount"] == 10_000, "subscriber count should be carried through")
    assert_true(item["thumbnailUrl"].endswith("_max.jpg"), "maxres thumbnail should be preferred")
    assert_true("s-maxage=3600" in response.headers.get("cache-control", ""), "non-empty results cache for 1h")


def test_search_ceiling() -> None:
    upstream = FakeUpstream(subscribers=60_000)
    with patch.object(youtube_api.requests, "get", side_effect=upstream.get):
        response = make_client().get("/api/search", params={"q": "marketing"})

    assert_true(response.json()["items"] == [], "channels above maxSubs must be dropped")
    assert_true(response.headers.get("cache-control") == "s-maxage=300", "empty results cache briefly")


def test_streak() -> None:
    upstream = FakeUpstream()
    with patch.object(youtube_api.requests, "get", side_effect=upstream.get):
        response = make_client().get("/api/search", params={"q": "marketing", "mode": "streak"})

    payload = response.json()
    assert_true(payload["meta"]["mode"] == "streak", "meta.mode should echo streak")
    assert_true(len(payload["items"]) == 1, "14 qualifying uploads should make a streak")
    assert_true(payload["items"][0]["streak"] == 14, "streak should stop at the 15th upload")


def test_missing_query() -> None:
    response = make_client().get("/api/search", params={"q": "  "})
    assert_true(response.status_code == 400, "empty q should be a 400")
    assert_true("error" in response.json(), "400 body should carry an error message")


def test_upstream_failure() -> None:
    upstream = FakeUpstream(fail_with=403)
    with patch.object(youtube_api.requests, "get", side_effect=upstream.get):
        response = make_client().get("/api/search", params={"q": "marketing"})

    payload = response.json()
    assert_true(response.status_code == 403, "upstream status should be surfaced")
    assert_true(payload.get("error_code") == "youtube_quota_exhausted", "quota failures are flagged")
    assert_true(len(upstream.calls) == 1, "the first upstream failure aborts the pipeline")


def run() -> int:
    checks = [
        ("health", test_health),
        ("search hit", test_search_hit),
        ("search subscriber ceiling", test_search_ceiling),
        ("streak mode", test_streak),
        ("missing query", test_missing_query),
        ("upstream failure", test_upstream_failure),
    ]
    failures = []

    for check_name, check_fn in checks:
        try:
            check_fn()
            print(f"[PASS] {check_name}")
        except Exception as exc:  # pragma: no cover - smoke script output path
            failures.append((check_name, str(exc)))
            print(f"[FAIL] {check_name}: {exc}")

    if failures:
        print(f"\nSmoke checks failed: {len(failures)}")
        for check_name, message in failures:
            print(f"- {check_name}: {message}")
        return 1

    print("\nAll smoke checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
