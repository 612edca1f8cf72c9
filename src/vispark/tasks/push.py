import asyncio
import logging
import uuid

from vispark.database import async_session
from vispark.services.push_store import PushSubscriptionStore
from vispark.services.video_pipeline import VideoPipeline
from vispark.worker import celery_app

logger = logging.getLogger(__name__)


async def _renew_due() -> tuple[int, int]:
    async with async_session() as db:
        renewed, failed = await PushSubscriptionStore(db).renew_due()
        await db.commit()
    return renewed, failed


async def _process_video(video_id: str, user_id: str, channel_id: str | None):
    async with async_session() as db:
        vispark = await VideoPipeline().process(
            db, uuid.UUID(user_id), video_id, channel_id=channel_id
        )
        await db.commit()

    if vispark is None:
        logger.info("No vispark produced for video %s", video_id)


@celery_app.task(name="vispark.tasks.push.renew_push_subscriptions")
def renew_push_subscriptions():
    renewed, failed = asyncio.run(_renew_due())
    return {"renewed": renewed, "failed": failed}


@celery_app.task(name="vispark.tasks.push.process_video")
def process_video(video_id: str, user_id: str, channel_id: str | None = None):
    asyncio.run(_process_video(video_id, user_id, channel_id))
