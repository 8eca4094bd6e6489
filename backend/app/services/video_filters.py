import re
from datetime import datetime, timezone
from typing import Any

from ..models import VideoCandidate

THUMBNAIL_PREFERENCE = ("maxres", "standard", "high", "medium", "default")
VIDEOS_ASPECT_RATIO_MIN = 1.2
DEFAULT_ASPECT_RATIO = 16 / 9
SHORTS_MARKER = "#shorts"
DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")

# Country -> language hint. Used only when the video declares no language.
COUNTRY_LANGUAGE = {
    "US": "en",
    "GB": "en",
    "CA": "en",
    "AU": "en",
    "NZ": "en",
    "IE": "en",
    "BR": "pt",
    "PT": "pt",
    "AO": "pt",
    "MZ": "pt",
    "ES": "es",
    "MX": "es",
    "AR": "es",
    "CO": "es",
    "CL": "es",
    "PE": "es",
    "UY": "es",
    "VE": "es",
    "FR": "fr",
    "BE": "fr",
    "DE": "de",
    "AT": "de",
    "IT": "it",
}


def iso8601_duration_to_seconds(duration: str | None) -> int:
    match = DURATION_RE.match(duration or "")
    if not match:
        return 0
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    seconds = int(match.group(3) or 0)
    return hours * 3600 + minutes * 60 + seconds


def parse_iso8601_datetime(value: str | None):
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def best_thumbnail_object(thumbnails: dict) -> dict | None:
    for key in THUMBNAIL_PREFERENCE:
        t = thumbnails.get(key)
        if t and "url" in t:
            return t
    return None


def best_thumbnail_dims(thumbnails: dict) -> tuple[int | None, int | None]:
    for key in THUMBNAIL_PREFERENCE:
        t = thumbnails.get(key)
        if t and t.get("width") and t.get("height"):
            return int(t["width"]), int(t["height"])
    return None, None


def thumbnail_aspect_ratio_from_dims(width: int | float | None, height: int | float | None) -> float | None:
    try:
        w = float(width or 0)
        h = float(height or 0)
    except (TypeError, ValueError):
        return None
    if w <= 0 or h <= 0:
        return None
    return w / h


def aspect_ratio(video: VideoCandidate) -> float:
    ratio = thumbnail_aspect_ratio_from_dims(video.thumbnail_width, video.thumbnail_height)
    return DEFAULT_ASPECT_RATIO if ratio is None else ratio


def normalize_language(tag: str | None) -> str | None:
    """
    "en-US" -> "en", "pt_BR" -> "pt". Empty or missing tags give None.
    """
    if not tag:
        return None
    base = re.split(r"[-_]", tag.strip(), maxsplit=1)[0].lower()
    return base or None


def normalize_country(value: str | None) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip().upper()


def language_for_country(country: str | None) -> str | None:
    if not country:
        return None
    return COUNTRY_LANGUAGE.get(country.upper())


def is_shorts_title(title: str | None) -> bool:
    return SHORTS_MARKER in (title or "").lower()


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def video_from_item(item: dict[str, Any]) -> VideoCandidate:
    snip = item.get("snippet") or {}
    stats = item.get("statistics") or {}
    details = item.get("contentDetails") or {}
    thumbs = snip.get("thumbnails") or {}
    thumb_obj = best_thumbnail_object(thumbs) or {}
    width, height = best_thumbnail_dims(thumbs)
    declared = snip.get("defaultAudioLanguage") or snip.get("defaultLanguage")

    return VideoCandidate(
        video_id=item.get("id") or "",
        title=snip.get("title") or "",
        channel_id=snip.get("channelId") or "",
        channel_title=snip.get("channelTitle") or "",
        published_at=parse_iso8601_datetime(snip.get("publishedAt")),
        view_count=_as_int(stats.get("viewCount")),
        duration_seconds=iso8601_duration_to_seconds(details.get("duration")),
        thumbnail_url=thumb_obj.get("url"),
        thumbnail_width=width,
        thumbnail_height=height,
        language=normalize_language(declared),
    )


def resolve_language(video: VideoCandidate, language_hint: str | None) -> str | None:
    return video.language or language_hint


def passes_video_checks(video: VideoCandidate, config) -> bool:
    """Every per-video condition that needs no channel data."""
    if video.view_count < config.min_views:
        return False
    if video.published_at is None or video.published_at < config.window_start:
        return False
    if video.duration_seconds < config.min_duration_seconds:
        return False
    if aspect_ratio(video) < VIDEOS_ASPECT_RATIO_MIN:
        return False
    if is_shorts_title(video.title):
        return False
    return True


def language_allowed(video: VideoCandidate, language_hint: str | None, langs) -> bool:
    language = resolve_language(video, language_hint)
    return language is not None and language in langs


def video_passes(video: VideoCandidate, config, language_hint: str | None) -> bool:
    return passes_video_checks(video, config) and language_allowed(video, language_hint, config.langs)
