from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vispark.errors import ApiError
from vispark.models import ChannelSubscription


class SubscriptionStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def subscribe(self, user_id: uuid.UUID, channel_id: str) -> ChannelSubscription:
        existing = await self.get(user_id, channel_id)
        if existing is not None:
            return existing
        subscription = ChannelSubscription(user_id=user_id, channel_id=channel_id)
        self.db.add(subscription)
        await self.db.flush()
        await self.db.refresh(subscription)
        return subscription

    async def get(self, user_id: uuid.UUID, channel_id: str) -> ChannelSubscription | None:
        return await self.db.scalar(
            select(ChannelSubscription).where(
                ChannelSubscription.user_id == user_id,
                ChannelSubscription.channel_id == channel_id,
            )
        )

    async def list_for_user(self, user_id: uuid.UUID) -> list[ChannelSubscription]:
        stmt = (
            select(ChannelSubscription)
            .where(ChannelSubscription.user_id == user_id)
            .order_by(ChannelSubscription.created_at.desc())
        )
        return list((await self.db.scalars(stmt)).all())

    async def unsubscribe(self, user_id: uuid.UUID, channel_id: str) -> None:
        subscription = await self.get(user_id, channel_id)
        if subscription is None:
            raise ApiError(404, "Not found", "You are not subscribed to this channel.")
        await self.db.delete(subscription)
        await self.db.flush()
