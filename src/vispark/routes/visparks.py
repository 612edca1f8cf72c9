from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError

from vispark.auth import get_current_user_id
from vispark.database import async_session
from vispark.errors import ApiError
from vispark.models import Vispark
from vispark.schemas import CamelModel, NonEmptyStr, VideoMetadata, VisparkOut
from vispark.services.vispark_store import VisparkStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["visparks"])


class VisparkCreateRequest(CamelModel):
    video_id: NonEmptyStr
    summaries: list[str]
    channel_id: str | None = None
    metadata: VideoMetadata | None = None


def to_out(vispark: Vispark) -> VisparkOut:
    has_metadata = any(
        (vispark.video_title, vispark.video_channel_title, vispark.video_thumbnails)
    )
    return VisparkOut(
        id=str(vispark.id),
        video_id=vispark.video_id,
        summaries=list(vispark.summaries or []),
        created_time=vispark.created_at.isoformat() if vispark.created_at else "",
        channel_id=vispark.video_channel_id,
        metadata=VideoMetadata.model_validate(vispark.metadata_dict) if has_metadata else None,
    )


def _dump(vispark: Vispark) -> dict:
    return to_out(vispark).model_dump(by_alias=True)


@router.post("/vispark", status_code=201)
async def create_vispark(
    body: VisparkCreateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    async with async_session() as db:
        store = VisparkStore(db)
        try:
            vispark = await store.create(
                user_id,
                body.video_id,
                body.summaries,
                channel_id=body.channel_id,
                metadata=body.metadata,
            )
            await db.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to save vispark for video %s", body.video_id)
            raise ApiError(502, "Persistence failed", f"Could not save vispark: {exc}")
        return {
            "id": str(vispark.id),
            "videoId": vispark.video_id,
            "summaries": vispark.summaries,
            "createdTime": vispark.created_at.isoformat() if vispark.created_at else None,
        }


@router.get("/visparks")
async def list_visparks(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    async with async_session() as db:
        visparks = await VisparkStore(db).list_for_user(user_id, limit=limit, offset=offset)
        return {"visparks": [_dump(v) for v in visparks]}


@router.get("/visparks/{video_id}")
async def get_vispark(video_id: str, user_id: uuid.UUID = Depends(get_current_user_id)):
    async with async_session() as db:
        vispark = await VisparkStore(db).get_latest_for_video(user_id, video_id)
        if vispark is None:
            raise ApiError(404, "Not found", f"No vispark for video {video_id}.")
        return _dump(vispark)


@router.delete("/visparks/{vispark_id}", status_code=204)
async def delete_vispark(
    vispark_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    async with async_session() as db:
        await VisparkStore(db).delete(vispark_id, user_id)
        await db.commit()
