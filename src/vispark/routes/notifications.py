from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from vispark.auth import get_current_user_id
from vispark.database import async_session
from vispark.services.notification_store import NotificationStore

router = APIRouter(tags=["notifications"])


@router.get("/notifications")
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    async with async_session() as db:
        notifications = await NotificationStore(db).list_for_user(user_id, limit, offset)
        return {
            "notifications": [
                {
                    "id": str(n.id),
                    "videoId": n.video_id,
                    "channelId": n.channel_id,
                    "videoTitle": n.video_title,
                    "videoUrl": n.video_url,
                    "publishedAt": n.published_at.isoformat() if n.published_at else None,
                    "summaryGenerated": n.summary_generated,
                    "notificationSent": n.notification_sent,
                    "createdAt": n.created_at.isoformat() if n.created_at else None,
                }
                for n in notifications
            ]
        }
