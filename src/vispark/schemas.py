from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TranscriptSegment(CamelModel):
    text: str
    duration: float = 0
    offset: float = 0
    lang: str | None = None


class TranscriptResult(CamelModel):
    video_id: str
    transcript: list[TranscriptSegment]
    lang: str | None = None


class SummaryResult(CamelModel):
    bullets: list[str]


class VideoMetadata(CamelModel):
    video_id: str
    title: str | None = None
    description: str | None = None
    channel_id: str | None = None
    channel_title: str | None = None
    channel_thumbnail_url: str | None = None
    published_at: str | None = None
    duration: str | None = None
    view_count: int | None = None
    like_count: int | None = None
    comment_count: int | None = None
    thumbnails: dict | None = None
    tags: list[str] | None = None
    category_id: str | None = None
    default_language: str | None = None
    default_audio_language: str | None = None
    has_summary: bool | None = None


class VisparkOut(CamelModel):
    id: str
    video_id: str
    summaries: list[str]
    created_time: str
    channel_id: str | None = None
    metadata: VideoMetadata | None = None
