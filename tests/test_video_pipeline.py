from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from vispark.errors import UpstreamError
from vispark.models import ProcessingStatus, PushCallbackLog
from vispark.schemas import SummaryResult, TranscriptResult, TranscriptSegment, VideoMetadata
from vispark.services.notification_store import NotificationStore
from vispark.services.push import FeedEntry
from vispark.services.video_pipeline import VideoPipeline
from vispark.services.vispark_store import VisparkStore


def _entry(video_id="vid1") -> FeedEntry:
    return FeedEntry(
        video_id=video_id,
        channel_id="UC1",
        title="New upload",
        url=f"https://www.youtube.com/watch?v={video_id}",
        published_at=datetime(2026, 3, 1, 9, 30),
    )


def _pipeline(transcript=None, transcript_error=None, metadata_error=None):
    transcripts = MagicMock()
    if transcript_error is not None:
        transcripts.fetch = AsyncMock(side_effect=transcript_error)
    else:
        transcripts.fetch = AsyncMock(
            return_value=TranscriptResult(
                video_id="vid1",
                transcript=transcript if transcript is not None else [TranscriptSegment(text="hi")],
            )
        )
    llm = MagicMock()
    llm.summarize = AsyncMock(return_value=SummaryResult(bullets=["Point one", "Point two"]))
    youtube = MagicMock()
    if metadata_error is not None:
        youtube.get_video = AsyncMock(side_effect=metadata_error)
    else:
        youtube.get_video = AsyncMock(
            return_value=VideoMetadata(video_id="vid1", title="New upload", channel_id="UC1")
        )
    return VideoPipeline(transcripts=transcripts, llm=llm, youtube=youtube)


@pytest.fixture
async def notified(db, user_id):
    notifications = NotificationStore(db)
    await notifications.upsert(user_id, _entry())
    await notifications.log_callback(user_id, _entry())
    await db.flush()
    return notifications


async def _log_status(db, user_id) -> PushCallbackLog:
    return await db.scalar(
        select(PushCallbackLog).where(
            PushCallbackLog.user_id == user_id, PushCallbackLog.video_id == "vid1"
        )
    )


class TestVideoPipeline:
    async def test_stores_summary_and_marks_processed(self, db, user_id, notified):
        vispark = await _pipeline().process(db, user_id, "vid1", channel_id="UC1")

        assert vispark.summaries == ["Point one", "Point two"]
        assert vispark.video_title == "New upload"
        assert vispark.video_channel_id == "UC1"

        notification = await notified.get(user_id, "vid1")
        await db.refresh(notification)
        assert notification.summary_generated is True

        log = await _log_status(db, user_id)
        await db.refresh(log)
        assert log.processing_status == ProcessingStatus.completed
        assert log.processed_at is not None

    async def test_failure_still_marks_processed(self, db, user_id, notified):
        pipeline = _pipeline(transcript_error=UpstreamError("no captions"))

        assert await pipeline.process(db, user_id, "vid1") is None

        notification = await notified.get(user_id, "vid1")
        await db.refresh(notification)
        assert notification.summary_generated is True

        log = await _log_status(db, user_id)
        await db.refresh(log)
        assert log.processing_status == ProcessingStatus.failed
        assert log.error_message == "no captions"
        assert await VisparkStore(db).get_latest_for_video(user_id, "vid1") is None

    async def test_empty_transcript_is_a_failure(self, db, user_id, notified):
        pipeline = _pipeline(transcript=[])

        assert await pipeline.process(db, user_id, "vid1") is None
        pipeline.llm.summarize.assert_not_awaited()

    async def test_missing_metadata_still_stores(self, db, user_id, notified):
        pipeline = _pipeline(metadata_error=UpstreamError("quota"))

        vispark = await pipeline.process(db, user_id, "vid1", channel_id="UC1")

        assert vispark.summaries == ["Point one", "Point two"]
        assert vispark.video_title is None

    async def test_existing_vispark_is_reused(self, db, user_id, notified):
        existing = await VisparkStore(db).create(user_id, "vid1", ["Saved"])
        pipeline = _pipeline()

        result = await pipeline.process(db, user_id, "vid1")

        assert result.id == existing.id
        pipeline.transcripts.fetch.assert_not_awaited()
