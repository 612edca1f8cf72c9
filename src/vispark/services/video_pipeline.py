from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from vispark.errors import MisconfiguredError, UpstreamError
from vispark.models import Vispark
from vispark.services.llm import LLMService
from vispark.services.notification_store import NotificationStore
from vispark.services.transcripts import TranscriptService
from vispark.services.vispark_store import VisparkStore
from vispark.services.youtube import YouTubeClient

logger = logging.getLogger(__name__)


class VideoPipeline:
    """Server-side processing of a push-notified upload."""

    def __init__(
        self,
        transcripts: TranscriptService | None = None,
        llm: LLMService | None = None,
        youtube: YouTubeClient | None = None,
    ):
        self.transcripts = transcripts or TranscriptService()
        self.llm = llm or LLMService()
        self.youtube = youtube or YouTubeClient()

    async def process(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        video_id: str,
        channel_id: str | None = None,
    ) -> Vispark | None:
        notifications = NotificationStore(db)
        store = VisparkStore(db)

        existing = await store.get_latest_for_video(user_id, video_id)
        if existing is not None:
            logger.info("Video %s already summarized for user %s", video_id, user_id)
            await notifications.mark_processed(user_id, video_id)
            await notifications.finish_callback_log(user_id, video_id)
            return existing

        try:
            transcript = await self.transcripts.fetch(video_id)
            if not transcript.transcript:
                raise UpstreamError(f"Empty transcript for {video_id}")
            summary = await self.llm.summarize(transcript.transcript)
        except (UpstreamError, MisconfiguredError) as exc:
            logger.warning("Processing failed for video %s: %s", video_id, exc)
            # marked anyway so the upload is not retried on every delivery
            await notifications.mark_processed(user_id, video_id)
            await notifications.finish_callback_log(user_id, video_id, error=str(exc))
            return None

        metadata = None
        try:
            metadata = await self.youtube.get_video(video_id)
        except (UpstreamError, MisconfiguredError):
            logger.exception("Could not load metadata for video %s", video_id)

        vispark = await store.create(
            user_id,
            video_id,
            summary.bullets,
            channel_id=channel_id,
            metadata=metadata,
        )
        await notifications.mark_processed(user_id, video_id)
        await notifications.finish_callback_log(user_id, video_id)
        logger.info("Stored vispark %s for video %s", vispark.id, video_id)
        return vispark
