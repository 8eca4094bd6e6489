from datetime import datetime

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel


class Record(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_item(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class VideoCandidate(Record):
    video_id: str
    title: str = ""
    channel_id: str = ""
    channel_title: str = ""
    published_at: datetime | None = None
    view_count: int = 0
    duration_seconds: int = 0
    thumbnail_url: str | None = None
    thumbnail_width: int | None = None
    thumbnail_height: int | None = None
    # Declared video language, already reduced to its base code.
    language: str | None = None

    @computed_field
    @property
    def url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"


class ChannelInfo(Record):
    channel_id: str
    title: str = ""
    # None when the channel hides its count or the API did not return one.
    subscriber_count: int | None = None
    country: str | None = None
    # Language implied by the channel country; fallback for videos with no declared language.
    language_hint: str | None = None
    uploads_playlist_id: str | None = None


class QualifiedVideo(VideoCandidate):
    subscriber_count: int | None = None


class StreakResult(Record):
    channel_id: str
    channel_title: str = ""
    streak: int
    subscriber_count: int | None = None
    country: str | None = None
    language: str | None = None
    uploads_scanned: int = 0
    video: QualifiedVideo | None = None
