from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import func, select

from vispark.auth import require_admin_key
from vispark.database import async_session
from vispark.models import (
    ChannelSubscription,
    PushStatus,
    PushSubscription,
    VideoNotification,
    Vispark,
)
from vispark.schemas import CamelModel, NonEmptyStr

router = APIRouter(prefix="/admin", tags=["admin"])


class ProcessVideoRequest(CamelModel):
    video_id: NonEmptyStr
    user_id: uuid.UUID
    channel_id: str | None = None


@router.get("/stats")
async def get_stats(_: str = Depends(require_admin_key)):
    async with async_session() as db:
        vispark_count = await db.scalar(select(func.count()).select_from(Vispark))
        user_count = await db.scalar(select(func.count(func.distinct(Vispark.user_id))))
        channel_count = await db.scalar(select(func.count()).select_from(ChannelSubscription))
        pending = await db.scalar(
            select(func.count())
            .select_from(VideoNotification)
            .where(VideoNotification.summary_generated.is_(False))
        )
        status_rows = (
            await db.execute(
                select(PushSubscription.status, func.count()).group_by(PushSubscription.status)
            )
        ).all()
        push_by_status = {status.value: 0 for status in PushStatus}
        push_by_status.update({row[0].value: row[1] for row in status_rows})

        return {
            "visparks": vispark_count,
            "users": user_count,
            "channelSubscriptions": channel_count,
            "pendingNotifications": pending,
            "pushSubscriptionsByStatus": push_by_status,
        }


@router.post("/tasks/renew")
async def trigger_renewal(_: str = Depends(require_admin_key)):
    from vispark.tasks.push import renew_push_subscriptions

    renew_push_subscriptions.delay()
    return {"status": "enqueued", "task": "renew_push_subscriptions"}


@router.post("/tasks/process-video")
async def trigger_processing(body: ProcessVideoRequest, _: str = Depends(require_admin_key)):
    from vispark.tasks.push import process_video

    process_video.delay(body.video_id, str(body.user_id), body.channel_id)
    return {"status": "enqueued", "task": "process_video", "videoId": body.video_id}
