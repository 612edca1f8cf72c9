from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from vispark.auth import get_current_user_id
from vispark.database import async_session
from vispark.errors import ApiError
from vispark.models import ChannelSubscription
from vispark.schemas import CamelModel, NonEmptyStr
from vispark.services.subscription_store import SubscriptionStore

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


class SubscribeRequest(CamelModel):
    channel_id: NonEmptyStr


def _dump(subscription: ChannelSubscription) -> dict:
    return {
        "id": str(subscription.id),
        "channelId": subscription.channel_id,
        "createdAt": subscription.created_at.isoformat() if subscription.created_at else None,
    }


@router.get("")
async def list_subscriptions(user_id: uuid.UUID = Depends(get_current_user_id)):
    async with async_session() as db:
        subscriptions = await SubscriptionStore(db).list_for_user(user_id)
        return {"subscriptions": [_dump(s) for s in subscriptions]}


@router.post("", status_code=201)
async def subscribe(
    body: SubscribeRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    async with async_session() as db:
        subscription = await SubscriptionStore(db).subscribe(user_id, body.channel_id)
        await db.commit()
        return _dump(subscription)


@router.get("/{channel_id}")
async def get_subscription(channel_id: str, user_id: uuid.UUID = Depends(get_current_user_id)):
    async with async_session() as db:
        subscription = await SubscriptionStore(db).get(user_id, channel_id)
        if subscription is None:
            raise ApiError(404, "Not found", "You are not subscribed to this channel.")
        return _dump(subscription)


@router.delete("/{channel_id}", status_code=204)
async def unsubscribe(channel_id: str, user_id: uuid.UUID = Depends(get_current_user_id)):
    async with async_session() as db:
        await SubscriptionStore(db).unsubscribe(user_id, channel_id)
        await db.commit()
