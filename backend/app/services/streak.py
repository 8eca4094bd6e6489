"""
Streak mode: find small channels that are *currently* on a run of qualifying uploads.

For each candidate channel the uploads playlist is walked newest-first and every
upload is run through the same per-video predicate as normal mode. The scan stops
at the first upload that fails, so the count is a prefix match over recent uploads,
never a tally of qualifying uploads scattered across the window.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator

from ..models import ChannelInfo, QualifiedVideo, StreakResult, VideoCandidate
from .discovery import discover_candidates, fetch_channels, fetch_videos, within_subscriber_ceiling
from .search_config import FilterConfig
from .video_filters import parse_iso8601_datetime, resolve_language, video_passes
from .youtube_api import PAGE_SIZE, YouTubeClient, playlist_item_pages

logger = logging.getLogger(__name__)

UPLOAD_SCAN_EXTRA = 36
MAX_UPLOAD_SCAN = 200
OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def upload_scan_limit(streak_length: int) -> int:
    return min(MAX_UPLOAD_SCAN, streak_length + UPLOAD_SCAN_EXTRA)


def iter_upload_items(pages: Iterable[dict[str, Any]], window_start: datetime, limit: int) -> Iterator[dict[str, Any]]:
    """
    Yield playlist entries until `limit` were produced, the pages run out, or a page
    whose oldest entry predates the window has been consumed.
    """
    produced = 0
    for payload in pages:
        oldest = None
        for item in payload.get("items", []):
            details = item.get("contentDetails") or {}
            if not details.get("videoId"):
                continue
            yield item
            produced += 1
            if produced >= limit:
                return
            published = parse_iso8601_datetime(details.get("videoPublishedAt"))
            if published is not None and (oldest is None or published < oldest):
                oldest = published
        if oldest is not None and oldest < window_start:
            return


def fetch_recent_uploads(client: YouTubeClient, playlist_id: str, config: FilterConfig) -> list[VideoCandidate]:
    limit = upload_scan_limit(config.streak_length)
    max_pages = -(-limit // PAGE_SIZE) + 1
    pages = playlist_item_pages(client, playlist_id, max_pages)
    video_ids = list(dict.fromkeys(
        item["contentDetails"]["videoId"]
        for item in iter_upload_items(pages, config.window_start, limit)
    ))
    if not video_ids:
        return []
    uploads = fetch_videos(client, video_ids)
    uploads.sort(key=lambda v: v.published_at or OLDEST, reverse=True)
    return uploads


def scan_streak(uploads: list[VideoCandidate], config: FilterConfig, language_hint: str | None) -> list[VideoCandidate]:
    """Leading run of qualifying uploads; uploads after the first miss are never looked at."""
    run = []
    for video in uploads:
        if not video_passes(video, config, language_hint):
            break
        run.append(video)
    return run


def channel_eligible(channel: ChannelInfo, config: FilterConfig) -> bool:
    if not channel.uploads_playlist_id:
        return False
    # A hidden count never qualifies for a streak, even without a ceiling.
    if channel.subscriber_count is None:
        return False
    if not within_subscriber_ceiling(channel, config.max_subs):
        return False
    return channel.language_hint is not None and channel.language_hint in config.langs


def evaluate_channel(client: YouTubeClient, channel: ChannelInfo, config: FilterConfig) -> StreakResult:
    uploads = fetch_recent_uploads(client, channel.uploads_playlist_id, config)
    run = scan_streak(uploads, config, channel.language_hint)

    representative = None
    if run:
        best = max(run, key=lambda v: v.view_count)
        representative = QualifiedVideo(
            **best.model_dump(exclude={"language", "url"}),
            language=resolve_language(best, channel.language_hint),
            subscriber_count=channel.subscriber_count,
        )

    return StreakResult(
        channel_id=channel.channel_id,
        channel_title=channel.title,
        streak=len(run),
        subscriber_count=channel.subscriber_count,
        country=channel.country,
        language=channel.language_hint,
        uploads_scanned=len(uploads),
        video=representative,
    )


def find_streak_channels(client: YouTubeClient, config: FilterConfig) -> tuple[list[StreakResult], dict[str, int]]:
    _, channel_ids = discover_candidates(client, config)
    # Only the first max_channels discovered channels are walked; the rest are dropped.
    candidates = channel_ids[:config.max_channels]
    stats = {"candidates": len(channel_ids), "evaluated": 0}
    if not candidates:
        return [], stats

    channels = fetch_channels(client, candidates)
    results = []
    for channel_id in candidates:
        channel = channels.get(channel_id)
        if channel is None or not channel_eligible(channel, config):
            continue
        result = evaluate_channel(client, channel, config)
        stats["evaluated"] += 1
        logger.info("channel %s streak=%d", channel_id, result.streak)
        if result.streak >= config.streak_length:
            results.append(result)

    results.sort(key=lambda r: (-r.streak, r.subscriber_count or 0))
    return results, stats
