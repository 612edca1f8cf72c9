from __future__ import annotations

import logging
import uuid
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import Field, model_validator
from pydantic_core import PydanticCustomError

from vispark.auth import get_optional_user_id
from vispark.database import async_session
from vispark.errors import ApiError
from vispark.schemas import CamelModel, NonEmptyStr, VideoMetadata
from vispark.services.vispark_store import VisparkStore
from vispark.services.youtube import YouTubeClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["youtube"])


class ChannelSearchRequest(CamelModel):
    query: NonEmptyStr


class ChannelDetailsRequest(CamelModel):
    channel_id: NonEmptyStr


class VideoDetailsRequest(CamelModel):
    action: Literal["getDetails", "getBatchDetails"] = "getDetails"
    video_id: str | None = None
    video_ids: list[NonEmptyStr] | None = None

    @model_validator(mode="after")
    def _require_ids(self):
        if self.action == "getBatchDetails" and not self.video_ids:
            raise PydanticCustomError(
                "missing_fields",
                "The request body must include a non-empty videoIds array for getBatchDetails action.",
            )
        if self.action == "getDetails" and not (self.video_id or "").strip():
            raise PydanticCustomError(
                "missing_fields", "The request body must include a non-empty videoId."
            )
        return self


class ChannelVideosRequest(CamelModel):
    channel_id: NonEmptyStr
    page_token: str | None = None
    max_results: int = Field(10, ge=1, le=50)
    only_summarized: bool = False


async def _summarized(user_id: uuid.UUID | None, video_ids: list[str]) -> set[str]:
    if user_id is None or not video_ids:
        return set()
    async with async_session() as db:
        return await VisparkStore(db).summarized_video_ids(user_id, video_ids)


@router.post("/youtube-channel-search")
async def search_channels(body: ChannelSearchRequest):
    return await YouTubeClient().search_channels(body.query)


@router.post("/youtube-channel-details")
async def channel_details(body: ChannelDetailsRequest):
    details = await YouTubeClient().get_channel_details(body.channel_id)
    if details is None:
        raise ApiError(404, "Not found", f"Channel {body.channel_id} was not found.")
    return details


def _dump(video: VideoMetadata) -> dict:
    return video.model_dump(by_alias=True)


@router.post("/video-details")
async def video_details(
    body: VideoDetailsRequest,
    user_id: uuid.UUID | None = Depends(get_optional_user_id),
):
    client = YouTubeClient()
    if body.action == "getBatchDetails":
        videos = await client.get_videos(body.video_ids)
        summarized = await _summarized(user_id, [v.video_id for v in videos])
        for video in videos:
            video.has_summary = video.video_id in summarized
        return {"videos": [_dump(v) for v in videos]}

    video_id = body.video_id.strip()
    video = await client.get_video(video_id)
    if video is None:
        raise ApiError(404, "Not found", f"Video {video_id} was not found.")
    video.has_summary = video_id in await _summarized(user_id, [video_id])
    return {"video": _dump(video)}


@router.post("/channel-videos")
async def channel_videos(
    body: ChannelVideosRequest,
    user_id: uuid.UUID | None = Depends(get_optional_user_id),
):
    videos, next_page_token = await YouTubeClient().list_channel_videos(
        body.channel_id, page_token=body.page_token, max_results=body.max_results
    )
    summarized = await _summarized(user_id, [v["videoId"] for v in videos])
    for video in videos:
        video["hasSummary"] = video["videoId"] in summarized
    if body.only_summarized:
        videos = [v for v in videos if v["hasSummary"]]
    return {"videos": videos, "nextPageToken": next_page_token}
