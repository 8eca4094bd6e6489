from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidRequest
from .video_filters import normalize_language

MAX_PAGES_PER_TERM = 5
MAX_WINDOW_DAYS = 365
MAX_STREAK_CHANNELS = 25
DEFAULT_STREAK_CHANNELS = 10
STREAK_LENGTH = 14
DEFAULT_LANGS = ("en", "pt", "es")
NO_LIMIT_TOKENS = {"none", "any", "unlimited", "-1"}

# search.list videoDuration buckets: medium is 4-20 minutes, long is over 20.
MEDIUM_BUCKET_MIN_SECONDS = 4 * 60
LONG_BUCKET_MIN_SECONDS = 20 * 60

DEFAULTS: dict[str, Any] = {
    "min_views": 100_000,
    "max_subs": 50_000,
    "min_duration_seconds": 240,
    "days": 30,
    "pages": 1,
}

STREAK_DEFAULTS: dict[str, Any] = {
    "min_views": 15_000,
    "max_subs": 100_000,
    "min_duration_seconds": 180,
    "days": 30,
}

# Named presets for the `model` parameter. max_subs=None lifts the ceiling.
PRESETS: dict[str, dict[str, Any]] = {
    "hidden_gems": {"days": 30, "min_views": 100_000, "max_subs": 50_000},
    "viral": {"days": 7, "min_views": 500_000, "max_subs": None},
    "micro": {"days": 30, "min_views": 20_000, "max_subs": 10_000},
    "rising": {"days": 14, "min_views": 50_000, "max_subs": 100_000},
    "evergreen": {"days": 90, "min_views": 250_000, "max_subs": 200_000},
    "streak": {"mode": "streak"},
}

PARAM_NAMES = {
    "min_views": "minViews",
    "min_duration_seconds": "minDurationSec",
    "days": "days",
    "pages": "pages",
}


class FilterConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    terms: tuple[str, ...] = Field(min_length=1)
    mode: Literal["normal", "streak"] = "normal"
    preset: str | None = None
    min_views: int = Field(ge=0)
    max_subs: int | None = Field(default=None, ge=0)
    min_duration_seconds: int = Field(ge=0)
    days: int = Field(ge=1, le=MAX_WINDOW_DAYS)
    pages: int = Field(ge=1, le=MAX_PAGES_PER_TERM)
    langs: frozenset[str]
    streak_length: int = Field(default=STREAK_LENGTH, ge=1)
    max_channels: int = Field(default=DEFAULT_STREAK_CHANNELS, ge=1, le=MAX_STREAK_CHANNELS)
    window_start: datetime

    @property
    def published_after(self) -> str:
        return self.window_start.isoformat().replace("+00:00", "Z")

    @property
    def duration_buckets(self) -> tuple[str | None, ...]:
        if self.min_duration_seconds >= LONG_BUCKET_MIN_SECONDS:
            return ("long",)
        if self.min_duration_seconds >= MEDIUM_BUCKET_MIN_SECONDS:
            return ("medium", "long")
        return (None,)


def parse_terms(raw: str | None) -> list[str]:
    return [term.strip() for term in (raw or "").split(",") if term.strip()]


def parse_non_negative_int(raw: Any) -> int | None:
    if raw is None:
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        return None
    return value if value >= 0 else None


def parse_max_subs(raw: Any) -> tuple[bool, int | None]:
    """
    Returns (given, value). value=None with given=True means "no ceiling".
    """
    if raw is None:
        return False, None
    text = str(raw).strip().lower()
    if text in NO_LIMIT_TOKENS:
        return True, None
    value = parse_non_negative_int(text)
    if value is None:
        return False, None
    return True, value


def parse_langs(raw: str | None) -> frozenset[str]:
    codes = {normalize_language(part) for part in (raw or "").split(",")}
    codes.discard(None)
    return frozenset(codes) if codes else frozenset(DEFAULT_LANGS)


def resolve_mode(params: Mapping[str, Any], preset: dict[str, Any]) -> str:
    requested = str(params.get("mode") or "").strip().lower()
    if requested in {"normal", "streak"}:
        return requested
    return preset.get("mode", "normal")


def resolve_filter_config(
    params: Mapping[str, Any],
    now: datetime | None = None,
    max_channels: int = DEFAULT_STREAK_CHANNELS,
) -> FilterConfig:
    """
    explicit parameter > preset value > mode default > global default.
    Unparseable numbers silently fall through to the next source.
    """
    terms = parse_terms(params.get("q"))
    if not terms:
        raise InvalidRequest("Pass the q parameter with one or more keywords (e.g. q=marketing,instagram).")

    # `mode` doubles as a preset selector when `model` is absent.
    preset_name = str(params.get("model") or params.get("mode") or "").strip().lower()
    preset = PRESETS.get(preset_name, {})
    if not preset:
        preset_name = None
    mode = resolve_mode(params, preset)

    base = dict(DEFAULTS)
    if mode == "streak":
        base.update(STREAK_DEFAULTS)
    base.update({key: value for key, value in preset.items() if key != "mode"})

    resolved: dict[str, Any] = {}
    for key, name in PARAM_NAMES.items():
        explicit = parse_non_negative_int(params.get(name))
        resolved[key] = explicit if explicit is not None else base[key]

    given, max_subs = parse_max_subs(params.get("maxSubs"))
    resolved["max_subs"] = max_subs if given else base["max_subs"]

    requested_channels = parse_non_negative_int(params.get("maxChannels"))
    channel_cap = requested_channels if requested_channels else max_channels

    days = max(1, min(resolved["days"], MAX_WINDOW_DAYS))
    now = now or datetime.now(timezone.utc)
    window_start = (now - timedelta(days=days)).replace(microsecond=0)

    return FilterConfig(
        terms=tuple(terms),
        mode=mode,
        preset=preset_name,
        min_views=resolved["min_views"],
        max_subs=resolved["max_subs"],
        min_duration_seconds=resolved["min_duration_seconds"],
        days=days,
        pages=max(1, min(resolved["pages"], MAX_PAGES_PER_TERM)),
        langs=parse_langs(params.get("langs")),
        max_channels=max(1, min(channel_cap, MAX_STREAK_CHANNELS)),
        window_start=window_start,
    )
