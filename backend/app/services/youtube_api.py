import logging
import time
from typing import Any, Callable, Iterator

import requests

from ..errors import UnexpectedError, UpstreamError

logger = logging.getLogger(__name__)

YOUTUBE_SEARCH_LIST = "https://www.googleapis.com/youtube/v3/search"
YOUTUBE_VIDEOS_LIST = "https://www.googleapis.com/youtube/v3/videos"
YOUTUBE_CHANNELS_LIST = "https://www.googleapis.com/youtube/v3/channels"
YOUTUBE_PLAYLIST_ITEMS_LIST = "https://www.googleapis.com/youtube/v3/playlistItems"

OPERATIONS = {
    YOUTUBE_SEARCH_LIST: "search.list",
    YOUTUBE_VIDEOS_LIST: "videos.list",
    YOUTUBE_CHANNELS_LIST: "channels.list",
    YOUTUBE_PLAYLIST_ITEMS_LIST: "playlistItems.list",
}

# videos.list / channels.list accept at most 50 ids per call.
BATCH_SIZE = 50
PAGE_SIZE = 50
PACING_DELAY_SECONDS = 0.05


def chunked(lst, n):
    for i in range(0, len(lst), n):
        yield lst[i:i + n]


class YouTubeClient:
    """
    Request-scoped YouTube Data API caller.

    Calls are strictly sequential. A fixed pause is inserted before every call
    after the first one so bursts stay under the upstream QPS limit.
    """

    def __init__(self, api_key: str, pacing_seconds: float = PACING_DELAY_SECONDS, timeout: int = 15):
        self.api_key = api_key
        self.pacing_seconds = pacing_seconds
        self.timeout = timeout
        self.calls = 0

    def get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        if self.calls and self.pacing_seconds > 0:
            time.sleep(self.pacing_seconds)
        self.calls += 1

        operation = OPERATIONS.get(url, url)
        merged = params.copy()
        merged["key"] = self.api_key
        try:
            response = requests.get(url, params=merged, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UnexpectedError(f"{operation} request failed: {exc}") from exc

        if response.status_code == 200:
            return response.json()

        logger.warning("%s returned HTTP %s", operation, response.status_code)
        raise UpstreamError(response.status_code, response.text, operation)


def iter_pages(fetch_page: Callable[[str | None], dict[str, Any]], max_pages: int) -> Iterator[dict[str, Any]]:
    """
    Lazily follow nextPageToken until it runs out or max_pages payloads were produced.
    Consumers can stop early simply by not pulling the next page.
    """
    page_token = None
    pages = 0
    while pages < max_pages:
        payload = fetch_page(page_token)
        pages += 1
        yield payload
        page_token = payload.get("nextPageToken")
        if not page_token:
            break


def search_video_pages(
    client: YouTubeClient,
    term: str,
    published_after: str,
    max_pages: int,
    video_duration: str | None = None,
) -> Iterator[dict[str, Any]]:
    def fetch_page(page_token: str | None) -> dict[str, Any]:
        params: dict[str, Any] = {
            "part": "snippet",
            "q": term,
            "type": "video",
            "order": "viewCount",
            "maxResults": PAGE_SIZE,
            "publishedAfter": published_after,
        }
        if video_duration:
            params["videoDuration"] = video_duration
        if page_token:
            params["pageToken"] = page_token
        return client.get(YOUTUBE_SEARCH_LIST, params)

    return iter_pages(fetch_page, max_pages)


def fetch_video_items(client: YouTubeClient, video_ids: list[str]) -> list[dict[str, Any]]:
    hydrated = []
    for batch in chunked(video_ids, BATCH_SIZE):
        payload = client.get(
            YOUTUBE_VIDEOS_LIST,
            {
                "part": "snippet,statistics,contentDetails",
                "id": ",".join(batch),
                "maxResults": BATCH_SIZE,
            },
        )
        hydrated.extend(payload.get("items", []))
    return hydrated


def fetch_channel_items(client: YouTubeClient, channel_ids: list[str]) -> list[dict[str, Any]]:
    hydrated = []
    for batch in chunked(channel_ids, BATCH_SIZE):
        payload = client.get(
            YOUTUBE_CHANNELS_LIST,
            {
                "part": "snippet,statistics,contentDetails,brandingSettings",
                "id": ",".join(batch),
                "maxResults": BATCH_SIZE,
            },
        )
        hydrated.extend(payload.get("items", []))
    return hydrated


def playlist_item_pages(client: YouTubeClient, playlist_id: str, max_pages: int) -> Iterator[dict[str, Any]]:
    def fetch_page(page_token: str | None) -> dict[str, Any]:
        params: dict[str, Any] = {
            "part": "contentDetails",
            "playlistId": playlist_id,
            "maxResults": PAGE_SIZE,
        }
        if page_token:
            params["pageToken"] = page_token
        return client.get(YOUTUBE_PLAYLIST_ITEMS_LIST, params)

    return iter_pages(fetch_page, max_pages)
