from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vispark.config import settings
from vispark.errors import ApiError
from vispark.models import PushStatus, PushSubscription
from vispark.services.push import HubClient, HubLease

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class PushSubscriptionStore:
    def __init__(self, db: AsyncSession, hub: HubClient | None = None):
        self.db = db
        self.hub = hub or HubClient()

    async def get_for_user(self, user_id: uuid.UUID, channel_id: str) -> PushSubscription | None:
        return await self.db.scalar(
            select(PushSubscription).where(
                PushSubscription.user_id == user_id,
                PushSubscription.channel_id == channel_id,
            )
        )

    async def list_for_channel(self, channel_id: str) -> list[PushSubscription]:
        stmt = select(PushSubscription).where(PushSubscription.channel_id == channel_id)
        return list((await self.db.scalars(stmt)).all())

    async def subscribe(self, user_id: uuid.UUID, channel_id: str) -> PushSubscription:
        if await self.get_for_user(user_id, channel_id) is not None:
            raise ApiError(
                400,
                "Already subscribed",
                "You are already subscribed to push notifications for this channel.",
            )

        lease = await self.hub.subscribe(
            channel_id, hub_secret=await self._channel_secret(channel_id)
        )
        subscription = PushSubscription(user_id=user_id, channel_id=channel_id)
        self._apply_lease(subscription, lease)
        self.db.add(subscription)
        await self.db.flush()
        await self._share_secret(channel_id, lease.hub_secret)
        return subscription

    async def unsubscribe(self, user_id: uuid.UUID, channel_id: str) -> None:
        subscription = await self.get_for_user(user_id, channel_id)
        if subscription is None:
            raise ApiError(
                404, "Not found", "No push subscription exists for this channel."
            )

        others = [s for s in await self.list_for_channel(channel_id) if s.user_id != user_id]
        if not others:
            # the hub keys leases by callback + topic, shared by every user of a channel
            await self.hub.unsubscribe(channel_id)
        await self.db.delete(subscription)
        await self.db.flush()

    async def get_owned(
        self,
        user_id: uuid.UUID,
        subscription_id: uuid.UUID | None = None,
        channel_id: str | None = None,
    ) -> PushSubscription:
        if subscription_id is not None:
            subscription = await self.db.get(PushSubscription, subscription_id)
            if subscription is not None and subscription.user_id != user_id:
                subscription = None
        else:
            subscription = await self.get_for_user(user_id, channel_id or "")
        if subscription is None:
            raise ApiError(404, "Not found", "Push subscription not found.")
        return subscription

    async def needing_renewal(self, now: datetime | None = None) -> list[PushSubscription]:
        now = now or _utcnow()
        stmt = select(PushSubscription).where(
            PushSubscription.auto_renewal_enabled.is_(True),
            PushSubscription.status != PushStatus.failed,
        )
        subscriptions = (await self.db.scalars(stmt)).all()
        return [
            s
            for s in subscriptions
            if s.expires_at <= now + timedelta(days=s.expires_at_buffer_days or 0)
        ]

    async def renew(self, subscription: PushSubscription) -> bool:
        logger.info(
            "Renewing push subscription %s for channel %s",
            subscription.id,
            subscription.channel_id,
        )
        subscription.status = PushStatus.renewing
        subscription.last_retry_at = _utcnow()
        await self.db.flush()

        try:
            lease = await self.hub.subscribe(
                subscription.channel_id, hub_secret=subscription.hub_secret
            )
        except Exception as exc:
            subscription.retry_count = (subscription.retry_count or 0) + 1
            subscription.renewal_error = str(exc)
            subscription.status = (
                PushStatus.failed
                if subscription.retry_count >= settings.youtube_push_max_retries
                else PushStatus.expiring
            )
            await self.db.flush()
            logger.warning(
                "Failed to renew push subscription %s (attempt %d): %s",
                subscription.id,
                subscription.retry_count,
                exc,
            )
            return False

        self._apply_lease(subscription, lease)
        await self.db.flush()
        await self._share_secret(subscription.channel_id, lease.hub_secret)
        return True

    async def _channel_secret(self, channel_id: str) -> str | None:
        return await self.db.scalar(
            select(PushSubscription.hub_secret)
            .where(PushSubscription.channel_id == channel_id)
            .order_by(PushSubscription.updated_at.desc())
            .limit(1)
        )

    async def _share_secret(self, channel_id: str, hub_secret: str) -> None:
        # every row of a channel must hold the secret the hub signs with
        await self.db.execute(
            update(PushSubscription)
            .where(
                PushSubscription.channel_id == channel_id,
                PushSubscription.hub_secret != hub_secret,
            )
            .values(hub_secret=hub_secret)
        )

    async def renew_due(self) -> tuple[int, int]:
        renewed = failed = 0
        for subscription in await self.needing_renewal():
            if await self.renew(subscription):
                renewed += 1
            else:
                failed += 1
        logger.info("Renewal completed: %d renewed, %d failed", renewed, failed)
        return renewed, failed

    @staticmethod
    def _apply_lease(subscription: PushSubscription, lease: HubLease) -> None:
        subscription.subscription_id = lease.subscription_id
        subscription.hub_secret = lease.hub_secret
        subscription.lease_seconds = lease.lease_seconds
        subscription.expires_at = lease.expires_at
        subscription.status = PushStatus.active
        subscription.retry_count = 0
        subscription.renewal_error = None
        subscription.last_retry_at = _utcnow()
