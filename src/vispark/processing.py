"""Video processing state machine.

A run walks ``idle -> gathering -> summarizing -> complete``; any failure
lands in ``error`` with ``error_step`` naming the phase that failed. The
summary is streamed as newline-delimited JSON deltas and accumulated into
``streaming_summary`` until the final bullets are parsed.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from vispark.client import RetryConfig, VisparkClient, retry_with_backoff
from vispark.schemas import TranscriptSegment, VideoMetadata, VisparkOut
from vispark.services.llm import parse_bullets
from vispark.services.transcripts import format_transcript

logger = logging.getLogger(__name__)

TRANSCRIPT_RETRY = RetryConfig(max_retries=2, base_delay=0.5)
METADATA_RETRY = RetryConfig(max_retries=2, base_delay=0.5)
SUMMARY_RETRY = RetryConfig(max_retries=3, base_delay=1.0)

TRANSCRIPT_FAILED = "An unexpected error occurred while fetching the transcript."
SUMMARY_FAILED = "An unexpected error occurred while generating the summary."


class Step(str, enum.Enum):
    idle = "idle"
    gathering = "gathering"
    summarizing = "summarizing"
    complete = "complete"
    error = "error"


class ViewMode(str, enum.Enum):
    summary = "summary"
    transcript = "transcript"


@dataclass
class VideoState:
    loading: bool = False
    transcript: str = ""
    summary: list[str] | None = None
    streaming_summary: list[str] = field(default_factory=list)
    error: str | None = None
    step: Step = Step.idle
    error_step: Step | None = None
    view: ViewMode = ViewMode.transcript
    user_view_preference: ViewMode | None = None
    video_metadata: VideoMetadata | None = None

    def reset(self, existing: VisparkOut | None = None) -> None:
        vars(self).update(vars(VideoState()))
        if existing is not None:
            self.summary = list(existing.summaries)
            self.view = ViewMode.summary if existing.summaries else ViewMode.transcript
            self.video_metadata = existing.metadata

    def fail(self, message: str, error_step: Step) -> None:
        self.error = message
        self.error_step = error_step
        self.step = Step.error

    @property
    def has_summary(self) -> bool:
        return bool(self.summary)


def merge_metadata(
    stored: VideoMetadata | None, fetched: VideoMetadata | None
) -> VideoMetadata | None:
    """Stored vispark metadata wins field by field over freshly fetched metadata."""
    if stored is None:
        return fetched
    if fetched is None:
        return stored
    merged = fetched.model_dump()
    merged.update(stored.model_dump(exclude_none=True))
    return VideoMetadata.model_validate(merged)


class VideoProcessor:
    def __init__(
        self,
        client: VisparkClient,
        state: VideoState | None = None,
        on_complete: Callable[[], None] | None = None,
        on_error: Callable[[str], None] | None = None,
        transcript_retry: RetryConfig = TRANSCRIPT_RETRY,
        metadata_retry: RetryConfig = METADATA_RETRY,
        summary_retry: RetryConfig = SUMMARY_RETRY,
        local: bool | None = None,
    ):
        self.client = client
        self.state = state or VideoState()
        self.on_complete = on_complete
        self.on_error = on_error
        self.transcript_retry = transcript_retry
        self.metadata_retry = metadata_retry
        self.summary_retry = summary_retry
        self.local = local

    async def run(
        self, video_id: str, existing: VisparkOut | None = None, lang: str | None = None
    ) -> VideoState:
        state = self.state
        state.loading = True
        state.reset(existing)
        state.step = Step.gathering

        metadata_task = asyncio.create_task(self.client.fetch_video_details(video_id))
        cancelled = False
        try:
            try:
                transcript = await retry_with_backoff(
                    lambda: self.client.fetch_transcript(video_id, local=self.local, lang=lang),
                    self.transcript_retry,
                )
            except Exception as exc:
                self._fail(str(exc) or TRANSCRIPT_FAILED, Step.gathering)
                return state

            segments = transcript.transcript
            state.transcript = format_transcript(segments)

            metadata = await self._resolve_metadata(video_id, existing, metadata_task)
            if metadata is not None:
                state.video_metadata = metadata

            if existing is not None:
                state.step = Step.complete
                self._complete()
                return state

            state.step = Step.summarizing
            try:
                bullets = await self._summarize(segments)
            except Exception as exc:
                self._fail(str(exc) or SUMMARY_FAILED, Step.summarizing)
                return state

            state.summary = bullets
            state.streaming_summary = []
            state.step = Step.complete
            await self._save(video_id, bullets, metadata)
            self._complete()
            return state
        except asyncio.CancelledError:
            cancelled = True
            raise
        finally:
            if not metadata_task.done():
                metadata_task.cancel()
            elif not metadata_task.cancelled():
                # retrieved so asyncio does not report it as never retrieved
                metadata_task.exception()
            if not cancelled:
                state.loading = False

    async def _resolve_metadata(
        self,
        video_id: str,
        existing: VisparkOut | None,
        metadata_task: asyncio.Task,
    ) -> VideoMetadata | None:
        stored = existing.metadata if existing is not None else None

        async def fetch() -> VideoMetadata | None:
            if not metadata_task.done() or metadata_task.exception() is None:
                return await metadata_task
            return await self.client.fetch_video_details(video_id)

        fetched = None
        if stored is None:
            try:
                fetched = await retry_with_backoff(fetch, self.metadata_retry)
            except Exception as exc:
                logger.warning("Failed to fetch YouTube video metadata for %s: %s", video_id, exc)
        return merge_metadata(stored, fetched)

    async def _summarize(self, segments: list[TranscriptSegment]) -> list[str]:
        state = self.state
        response = await retry_with_backoff(
            lambda: self.client.open_summary_stream(segments), self.summary_retry
        )
        if state.user_view_preference is None:
            state.view = ViewMode.summary

        accumulated = ""
        try:
            async for content in self.client.iter_summary_deltas(response):
                accumulated += content
                state.streaming_summary = [accumulated]
        except Exception as exc:
            logger.warning("Streaming failed, falling back to non-streaming: %s", exc)
            result = await retry_with_backoff(
                lambda: self.client.fetch_summary(segments), self.summary_retry
            )
            if state.user_view_preference is None:
                state.view = ViewMode.summary if result.bullets else ViewMode.transcript
            return result.bullets

        return parse_bullets(accumulated)

    async def _save(
        self, video_id: str, bullets: list[str], metadata: VideoMetadata | None
    ) -> None:
        if metadata is None or not metadata.channel_id:
            logger.warning("Skipping vispark save due to missing channel ID: %s", video_id)
            return
        try:
            await self.client.save_vispark(video_id, metadata.channel_id, bullets, metadata)
        except Exception as exc:
            logger.warning("Failed to save vispark for %s: %s", video_id, exc)

    def _fail(self, message: str, error_step: Step) -> None:
        self.state.fail(message, error_step)
        if self.on_error:
            self.on_error(message)

    def _complete(self) -> None:
        if self.on_complete:
            self.on_complete()
