from datetime import datetime, timedelta, timezone
from typing import Any

from starlette.requests import Request

from backend.app.errors import UpstreamError
from backend.app.services.youtube_api import (
    BATCH_SIZE,
    OPERATIONS,
    YOUTUBE_CHANNELS_LIST,
    YOUTUBE_PLAYLIST_ITEMS_LIST,
    YOUTUBE_SEARCH_LIST,
    YOUTUBE_VIDEOS_LIST,
)


def iso_days_ago(days_ago: float, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return (now - timedelta(days=days_ago)).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def make_request(query_string: bytes = b"", ip: str = "127.0.0.1") -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/api/search",
            "headers": [],
            "client": (ip, 8000),
            "query_string": query_string,
            "server": ("test", 80),
            "scheme": "http",
            "http_version": "1.1",
        }
    )


def make_video(
    video_id: str,
    channel_id: str = "UC_TEST",
    days_ago: float = 5,
    views: int = 200_000,
    duration: str = "PT10M",
    title: str | None = None,
    width: int | None = 1280,
    height: int | None = 720,
    language: str | None = None,
) -> dict[str, Any]:
    thumb: dict[str, Any] = {"url": f"https://img/{video_id}.jpg"}
    if width and height:
        thumb.update({"width": width, "height": height})
    snippet: dict[str, Any] = {
        "title": title if title is not None else f"Video {video_id}",
        "channelId": channel_id,
        "channelTitle": f"Channel {channel_id}",
        "publishedAt": iso_days_ago(days_ago),
        "thumbnails": {"high": thumb},
    }
    if language:
        snippet["defaultAudioLanguage"] = language
    return {
        "id": video_id,
        "snippet": snippet,
        "statistics": {"viewCount": str(views)},
        "contentDetails": {"duration": duration},
    }


def make_channel(
    channel_id: str,
    subscribers: int | None = 10_000,
    hidden: bool = False,
    country: str | None = "US",
    branding_country: str | None = None,
    uploads: str | None = None,
    default_language: str | None = None,
) -> dict[str, Any]:
    stats: dict[str, Any] = {"hiddenSubscriberCount": hidden}
    if subscribers is not None:
        stats["subscriberCount"] = str(subscribers)
    snippet: dict[str, Any] = {"title": f"Channel {channel_id}"}
    if country:
        snippet["country"] = country
    if default_language:
        snippet["defaultLanguage"] = default_language
    item: dict[str, Any] = {
        "id": channel_id,
        "snippet": snippet,
        "statistics": stats,
        "contentDetails": {"relatedPlaylists": {"uploads": uploads or f"UU{channel_id}"}},
    }
    if branding_country:
        item["brandingSettings"] = {"channel": {"country": branding_country}}
    return item


def make_playlist_item(video_id: str, days_ago: float) -> dict[str, Any]:
    return {"contentDetails": {"videoId": video_id, "videoPublishedAt": iso_days_ago(days_ago)}}


class FakeYouTube:
    """
    In-memory stand-in for YouTubeClient.

    search_pages: term -> list of pages, each page a list of (video_id, channel_id)
    playlists: playlist id -> list of pages of playlistItems entries
    """

    def __init__(
        self,
        search_pages: dict[str, list[list[tuple[str, str]]]] | None = None,
        videos: list[dict[str, Any]] | None = None,
        channels: list[dict[str, Any]] | None = None,
        playlists: dict[str, list[list[dict[str, Any]]]] | None = None,
        failures: dict[str, tuple[int, str]] | None = None,
    ):
        self.search_pages = search_pages or {}
        self.videos = {item["id"]: item for item in videos or []}
        self.channels = {item["id"]: item for item in channels or []}
        self.playlists = playlists or {}
        self.failures = failures or {}
        self.requests: list[tuple[str, dict[str, Any]]] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def calls_to(self, url: str) -> list[dict[str, Any]]:
        return [params for called, params in self.requests if called == url]

    def get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        self.requests.append((url, dict(params)))
        if url in self.failures:
            status, body = self.failures[url]
            raise UpstreamError(status, body, OPERATIONS[url])

        if url == YOUTUBE_SEARCH_LIST:
            pages = self.search_pages.get(params["q"], [[]])
            return self._page(pages, params, lambda pair: {
                "id": {"kind": "youtube#video", "videoId": pair[0]},
                "snippet": {"channelId": pair[1]},
            })
        if url == YOUTUBE_PLAYLIST_ITEMS_LIST:
            pages = self.playlists.get(params["playlistId"], [[]])
            return self._page(pages, params, lambda item: item)
        if url in {YOUTUBE_VIDEOS_LIST, YOUTUBE_CHANNELS_LIST}:
            ids = params["id"].split(",")
            assert len(ids) <= BATCH_SIZE
            source = self.videos if url == YOUTUBE_VIDEOS_LIST else self.channels
            return {"items": [source[i] for i in ids if i in source]}
        raise AssertionError(f"unexpected url {url}")

    @staticmethod
    def _page(pages, params, build) -> dict[str, Any]:
        token = params.get("pageToken")
        index = int(token.split("-")[1]) if token else 0
        payload: dict[str, Any] = {"items": [build(entry) for entry in pages[index]]}
        if index + 1 < len(pages):
            payload["nextPageToken"] = f"page-{index + 1}"
        return payload
