from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vispark.errors import ApiError
from vispark.models import Vispark
from vispark.schemas import VideoMetadata


class VisparkStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: uuid.UUID,
        video_id: str,
        summaries: list[str],
        channel_id: str | None = None,
        metadata: VideoMetadata | None = None,
    ) -> Vispark:
        vispark = Vispark(
            user_id=user_id,
            video_id=video_id,
            video_channel_id=channel_id or (metadata.channel_id if metadata else None),
            summaries=list(summaries),
        )
        if metadata is not None:
            vispark.video_title = metadata.title
            vispark.video_description = metadata.description
            vispark.video_channel_title = metadata.channel_title
            vispark.video_thumbnails = metadata.thumbnails
            vispark.video_published_at = metadata.published_at
            vispark.video_duration = metadata.duration
            vispark.video_default_language = metadata.default_language
        self.db.add(vispark)
        await self.db.flush()
        await self.db.refresh(vispark)
        return vispark

    async def list_for_user(
        self, user_id: uuid.UUID, limit: int = 20, offset: int = 0
    ) -> list[Vispark]:
        stmt = (
            select(Vispark)
            .where(Vispark.user_id == user_id)
            .order_by(Vispark.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list((await self.db.scalars(stmt)).all())

    async def get_latest_for_video(self, user_id: uuid.UUID, video_id: str) -> Vispark | None:
        stmt = (
            select(Vispark)
            .where(Vispark.user_id == user_id, Vispark.video_id == video_id)
            .order_by(Vispark.created_at.desc())
            .limit(1)
        )
        return await self.db.scalar(stmt)

    async def summarized_video_ids(self, user_id: uuid.UUID, video_ids: list[str]) -> set[str]:
        if not video_ids:
            return set()
        stmt = select(Vispark.video_id).where(
            Vispark.user_id == user_id, Vispark.video_id.in_(video_ids)
        )
        return set((await self.db.scalars(stmt)).all())

    async def delete(self, vispark_id: uuid.UUID, user_id: uuid.UUID) -> None:
        vispark = await self.db.get(Vispark, vispark_id)
        if not vispark or vispark.user_id != user_id:
            raise ApiError(404, "Not found", "Vispark not found.")
        await self.db.delete(vispark)
        await self.db.flush()
