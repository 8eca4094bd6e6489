from datetime import datetime, timezone

from backend.app.services.search_config import resolve_filter_config
from backend.app.services.video_filters import (
    aspect_ratio,
    best_thumbnail_dims,
    iso8601_duration_to_seconds,
    language_for_country,
    normalize_language,
    parse_iso8601_datetime,
    passes_video_checks,
    video_from_item,
    video_passes,
)
from backend.tests.fakes import make_video


def default_config(**params):
    return resolve_filter_config({"q": "marketing", **params})


def test_iso8601_duration_to_seconds():
    assert iso8601_duration_to_seconds("PT1H2M5S") == 3725
    assert iso8601_duration_to_seconds("PT45S") == 45
    assert iso8601_duration_to_seconds("PT5M") == 300
    assert iso8601_duration_to_seconds("PT2H") == 7200
    assert iso8601_duration_to_seconds("garbage") == 0
    assert iso8601_duration_to_seconds("") == 0
    assert iso8601_duration_to_seconds(None) == 0


def test_normalize_language():
    assert normalize_language("en-US") == "en"
    assert normalize_language("pt_BR") == "pt"
    assert normalize_language("ES") == "es"
    assert normalize_language("") is None
    assert normalize_language(None) is None


def test_language_for_country_has_no_guess():
    assert language_for_country("us") == "en"
    assert language_for_country("BR") == "pt"
    assert language_for_country("JP") is None
    assert language_for_country(None) is None


def test_parse_iso8601_datetime():
    parsed = parse_iso8601_datetime("2026-10-01T12:00:00Z")
    assert parsed == datetime(2026, 10, 1, 12, tzinfo=timezone.utc)
    assert parse_iso8601_datetime("not a date") is None
    assert parse_iso8601_datetime(None) is None


def test_best_thumbnail_dims_follows_preference_order():
    thumbs = {
        "default": {"url": "d", "width": 120, "height": 90},
        "maxres": {"url": "m", "width": 1280, "height": 720},
    }
    assert best_thumbnail_dims(thumbs) == (1280, 720)
    assert best_thumbnail_dims({"medium": {"url": "x"}, "default": {"url": "d", "width": 120, "height": 90}}) == (120, 90)
    assert best_thumbnail_dims({}) == (None, None)


def test_aspect_ratio_defaults_to_widescreen_without_dims():
    video = video_from_item(make_video("a", width=None, height=None))
    assert abs(aspect_ratio(video) - 16 / 9) < 1e-9


def test_video_from_item_maps_fields():
    video = video_from_item(make_video("abc", channel_id="UC1", views=1234, duration="PT3M", language="en-GB"))
    assert video.video_id == "abc"
    assert video.channel_id == "UC1"
    assert video.view_count == 1234
    assert video.duration_seconds == 180
    assert video.thumbnail_url == "https://img/abc.jpg"
    assert video.language == "en"
    assert video.url.endswith("abc")


def test_video_passes_all_conditions():
    config = default_config()
    assert video_passes(video_from_item(make_video("ok")), config, "en")

    # Every floor is inclusive.
    at_floors = video_from_item(
        make_video("edge", views=100_000, duration="PT4M", width=1200, height=1000)
    ).model_copy(update={"published_at": config.window_start})
    assert at_floors.published_at == config.window_start
    assert aspect_ratio(at_floors) == 1.2
    assert video_passes(at_floors, config, "en")


def test_video_passes_rejects_each_failed_condition():
    config = default_config()
    failing = [
        make_video("low_views", views=99_999),
        make_video("old", days_ago=45),
        make_video("short_duration", duration="PT3M59S"),
        make_video("vertical", width=720, height=1280),
        make_video("square", width=1000, height=1000),
        make_video("tagged", title="My day #Shorts"),
        make_video("missing_duration", duration=""),
    ]
    for item in failing:
        assert not video_passes(video_from_item(item), config, "en"), item["id"]


def test_video_passes_language_resolution():
    config = default_config(langs="en")
    # Declared language wins over the channel hint.
    assert not video_passes(video_from_item(make_video("a", language="pt-BR")), config, "en")
    assert video_passes(video_from_item(make_video("b", language="en-US")), config, "pt")
    # Falls back to the channel hint.
    assert video_passes(video_from_item(make_video("c")), config, "en")
    # Nothing resolvable: dropped.
    assert not video_passes(video_from_item(make_video("d")), config, None)


def test_passes_video_checks_ignores_language():
    config = default_config(langs="en")
    assert passes_video_checks(video_from_item(make_video("a", language="ja")), config)


def test_missing_publish_time_fails_recency():
    item = make_video("a")
    item["snippet"].pop("publishedAt")
    assert not passes_video_checks(video_from_item(item), default_config())
