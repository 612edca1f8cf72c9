from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from vispark.models import PushCallbackLog, ProcessingStatus, VideoNotification
from vispark.services.push import FeedEntry


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class NotificationStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert(self, user_id: uuid.UUID, entry: FeedEntry) -> None:
        values = {
            "user_id": user_id,
            "video_id": entry.video_id,
            "channel_id": entry.channel_id,
            "video_title": entry.title,
            "video_url": entry.url,
            "published_at": entry.published_at,
        }
        stmt = insert(VideoNotification).values(id=uuid.uuid4(), **values)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_video_notification_user_video",
            set_={
                "video_title": stmt.excluded.video_title,
                "published_at": stmt.excluded.published_at,
                "updated_at": _utcnow(),
            },
        )
        await self.db.execute(stmt)

    async def mark_processed(self, user_id: uuid.UUID, video_id: str) -> None:
        await self.db.execute(
            update(VideoNotification)
            .where(VideoNotification.user_id == user_id, VideoNotification.video_id == video_id)
            .values(summary_generated=True, updated_at=_utcnow())
        )

    async def get(self, user_id: uuid.UUID, video_id: str) -> VideoNotification | None:
        return await self.db.scalar(
            select(VideoNotification).where(
                VideoNotification.user_id == user_id, VideoNotification.video_id == video_id
            )
        )

    async def list_for_user(
        self, user_id: uuid.UUID, limit: int = 20, offset: int = 0
    ) -> list[VideoNotification]:
        stmt = (
            select(VideoNotification)
            .where(VideoNotification.user_id == user_id)
            .order_by(VideoNotification.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list((await self.db.scalars(stmt)).all())

    async def log_callback(
        self, user_id: uuid.UUID, entry: FeedEntry
    ) -> PushCallbackLog:
        log = PushCallbackLog(
            user_id=user_id,
            channel_id=entry.channel_id,
            video_id=entry.video_id,
            video_title=entry.title,
        )
        self.db.add(log)
        await self.db.flush()
        return log

    async def finish_callback_log(
        self, user_id: uuid.UUID, video_id: str, error: str | None = None
    ) -> None:
        await self.db.execute(
            update(PushCallbackLog)
            .where(
                PushCallbackLog.user_id == user_id,
                PushCallbackLog.video_id == video_id,
                PushCallbackLog.processing_status == ProcessingStatus.received,
            )
            .values(
                processing_status=ProcessingStatus.failed if error else ProcessingStatus.completed,
                error_message=error,
                processed_at=_utcnow(),
            )
        )
