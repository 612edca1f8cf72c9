from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import model_validator
from pydantic_core import PydanticCustomError

from vispark.auth import get_current_user_id
from vispark.database import async_session
from vispark.errors import ApiError
from vispark.models import PushSubscription
from vispark.schemas import CamelModel, NonEmptyStr
from vispark.services.notification_store import NotificationStore
from vispark.services.push import parse_feed, verify_signature
from vispark.services.push_store import PushSubscriptionStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["push"])


class PushChannelRequest(CamelModel):
    channel_id: NonEmptyStr


class ManualRenewRequest(CamelModel):
    subscription_id: uuid.UUID | None = None
    channel_id: str | None = None

    @model_validator(mode="after")
    def _require_target(self):
        if self.subscription_id is None and not (self.channel_id or "").strip():
            raise PydanticCustomError(
                "missing_fields",
                "The request body must include either subscriptionId or channelId.",
            )
        return self


def _dump(subscription: PushSubscription) -> dict:
    return {
        "id": str(subscription.id),
        "channelId": subscription.channel_id,
        "subscriptionId": subscription.subscription_id,
        "leaseSeconds": subscription.lease_seconds,
        "expiresAt": subscription.expires_at.isoformat() if subscription.expires_at else None,
        "status": subscription.status.value,
        "retryCount": subscription.retry_count,
        "renewalError": subscription.renewal_error,
        "autoRenewalEnabled": subscription.auto_renewal_enabled,
    }


@router.post("/youtube-push-subscribe", status_code=201)
async def push_subscribe(
    body: PushChannelRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    async with async_session() as db:
        subscription = await PushSubscriptionStore(db).subscribe(user_id, body.channel_id)
        await db.commit()
        return {"success": True, "subscription": _dump(subscription)}


@router.post("/youtube-push-unsubscribe")
async def push_unsubscribe(
    body: PushChannelRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    async with async_session() as db:
        await PushSubscriptionStore(db).unsubscribe(user_id, body.channel_id)
        await db.commit()
        return {"success": True, "channelId": body.channel_id}


@router.post("/youtube-push-manual-renew")
async def push_manual_renew(
    body: ManualRenewRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    async with async_session() as db:
        store = PushSubscriptionStore(db)
        subscription = await store.get_owned(
            user_id, subscription_id=body.subscription_id, channel_id=body.channel_id
        )
        renewed = await store.renew(subscription)
        await db.commit()
        if not renewed:
            raise ApiError(
                502, "Renewal failed", subscription.renewal_error or "Hub rejected the renewal."
            )
        return {"success": True, "subscription": _dump(subscription)}


@router.get("/youtube-push-callback", response_class=PlainTextResponse)
async def push_verify(
    challenge: str | None = Query(None, alias="hub.challenge"),
    mode: str | None = Query(None, alias="hub.mode"),
    topic: str | None = Query(None, alias="hub.topic"),
):
    if not challenge:
        raise ApiError(400, "Missing challenge", "hub.challenge query parameter is required.")
    logger.info("Hub verification for %s (mode=%s)", topic, mode)
    return PlainTextResponse(challenge)


@router.post("/youtube-push-callback")
async def push_callback(
    request: Request,
    x_hub_signature: str | None = Header(None),
):
    if not x_hub_signature:
        raise ApiError(401, "Unauthorized", "Missing X-Hub-Signature header.")

    body = await request.body()
    loop = asyncio.get_running_loop()
    entries = await loop.run_in_executor(None, parse_feed, body)
    if not entries:
        logger.info("Push callback carried no upload entries")
        return {"success": True, "processed": 0}

    channel_id = entries[0].channel_id
    async with async_session() as db:
        subscriptions = await PushSubscriptionStore(db).list_for_channel(channel_id)
        if not subscriptions:
            raise ApiError(404, "Not found", f"No push subscription for channel {channel_id}.")

        # the hub keeps one secret per topic, the most recent one a user subscribed with
        if not any(verify_signature(body, x_hub_signature, s.hub_secret) for s in subscriptions):
            logger.warning("Rejected push callback for %s: bad signature", channel_id)
            raise ApiError(401, "Unauthorized", "Invalid X-Hub-Signature.")

        notifications = NotificationStore(db)
        jobs = []
        for subscription in subscriptions:
            for entry in entries:
                if entry.channel_id != channel_id:
                    continue
                known = await notifications.get(subscription.user_id, entry.video_id)
                await notifications.upsert(subscription.user_id, entry)
                if known is not None and known.summary_generated:
                    # redeliveries follow title and description edits
                    logger.info(
                        "Video %s already processed for user %s",
                        entry.video_id,
                        subscription.user_id,
                    )
                    continue
                await notifications.log_callback(subscription.user_id, entry)
                jobs.append((entry.video_id, str(subscription.user_id), entry.channel_id))
        await db.commit()

    from vispark.tasks.push import process_video

    for video_id, user_id, entry_channel_id in jobs:
        process_video.delay(video_id, user_id, entry_channel_id)
    logger.info("Queued %d video(s) from channel %s", len(jobs), channel_id)
    return {"success": True, "processed": len(jobs)}
