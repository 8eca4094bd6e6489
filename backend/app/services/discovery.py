import logging
from typing import Any

from ..models import ChannelInfo, QualifiedVideo, VideoCandidate
from .search_config import FilterConfig
from .video_filters import (
    language_allowed,
    language_for_country,
    normalize_country,
    passes_video_checks,
    resolve_language,
    video_from_item,
)
from .youtube_api import YouTubeClient, fetch_channel_items, fetch_video_items, search_video_pages

logger = logging.getLogger(__name__)


def discover_candidates(client: YouTubeClient, config: FilterConfig) -> tuple[list[str], list[str]]:
    """
    Run search.list for every (term x duration bucket) pair, following pages up to
    config.pages each. Returns de-duplicated video ids and channel ids, both in
    first-seen order so repeated runs over the same data stay identical.
    """
    video_ids: dict[str, None] = {}
    channel_ids: dict[str, None] = {}

    for term in config.terms:
        for bucket in config.duration_buckets:
            for payload in search_video_pages(client, term, config.published_after, config.pages, bucket):
                for item in payload.get("items", []):
                    vid = (item.get("id") or {}).get("videoId")
                    if vid:
                        video_ids.setdefault(vid)
                    cid = (item.get("snippet") or {}).get("channelId")
                    if cid:
                        channel_ids.setdefault(cid)

    logger.info(
        "discovered %d videos and %d channels for %d terms",
        len(video_ids),
        len(channel_ids),
        len(config.terms),
    )
    return list(video_ids), list(channel_ids)


def fetch_videos(client: YouTubeClient, video_ids: list[str]) -> list[VideoCandidate]:
    return [video_from_item(item) for item in fetch_video_items(client, video_ids) if item.get("id")]


def channel_from_item(item: dict[str, Any]) -> ChannelInfo:
    snip = item.get("snippet") or {}
    stats = item.get("statistics") or {}
    details = item.get("contentDetails") or {}
    branding = (item.get("brandingSettings") or {}).get("channel") or {}

    subscribers = None
    if not stats.get("hiddenSubscriberCount"):
        try:
            subscribers = int(stats["subscriberCount"])
        except (KeyError, TypeError, ValueError):
            subscribers = None

    country = normalize_country(snip.get("country")) or normalize_country(branding.get("country"))
    return ChannelInfo(
        channel_id=item.get("id") or "",
        title=snip.get("title") or "",
        subscriber_count=subscribers,
        country=country,
        language_hint=language_for_country(country),
        uploads_playlist_id=(details.get("relatedPlaylists") or {}).get("uploads"),
    )


def fetch_channels(client: YouTubeClient, channel_ids: list[str]) -> dict[str, ChannelInfo]:
    channels = {}
    for item in fetch_channel_items(client, channel_ids):
        info = channel_from_item(item)
        if info.channel_id:
            channels[info.channel_id] = info
    return channels


def within_subscriber_ceiling(channel: ChannelInfo, max_subs: int | None) -> bool:
    if max_subs is None:
        return True
    # Hidden or unknown counts never pass a ceiling.
    if channel.subscriber_count is None:
        return False
    return channel.subscriber_count <= max_subs


def rank_videos(
    videos: list[VideoCandidate],
    channels: dict[str, ChannelInfo],
    config: FilterConfig,
) -> list[QualifiedVideo]:
    qualified = []
    for video in videos:
        channel = channels.get(video.channel_id)
        if channel is None:
            continue
        if not within_subscriber_ceiling(channel, config.max_subs):
            continue
        if not language_allowed(video, channel.language_hint, config.langs):
            continue
        qualified.append(
            QualifiedVideo(
                **video.model_dump(exclude={"language", "url"}),
                language=resolve_language(video, channel.language_hint),
                subscriber_count=channel.subscriber_count,
            )
        )

    qualified.sort(key=lambda v: v.view_count, reverse=True)
    return qualified


def find_videos(client: YouTubeClient, config: FilterConfig) -> tuple[list[QualifiedVideo], dict[str, int]]:
    video_ids, _ = discover_candidates(client, config)
    stats = {"candidates": len(video_ids), "enriched": 0, "channels": 0}
    if not video_ids:
        return [], stats

    videos = [v for v in fetch_videos(client, video_ids) if passes_video_checks(v, config)]
    stats["enriched"] = len(videos)
    if not videos:
        return [], stats

    channel_ids = list(dict.fromkeys(v.channel_id for v in videos if v.channel_id))
    channels = fetch_channels(client, channel_ids)
    stats["channels"] = len(channels)

    ranked = rank_videos(videos, channels, config)
    logger.info("%d of %d candidate videos qualified", len(ranked), len(video_ids))
    return ranked, stats
