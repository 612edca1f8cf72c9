"""Async client for the Vispark HTTP API."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from vispark.schemas import (
    SummaryResult,
    TranscriptResult,
    TranscriptSegment,
    VideoMetadata,
    VisparkOut,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    base_delay: float = 1.0
    jitter: float = 1.0


async def retry_with_backoff(fn: Callable[[], Awaitable[T]], config: RetryConfig) -> T:
    """Await ``fn()`` until it succeeds, waiting ``base_delay * 2**n`` plus jitter between tries."""
    retrying = AsyncRetrying(
        stop=stop_after_attempt(config.max_retries + 1),
        wait=wait_exponential(multiplier=config.base_delay, min=0) + wait_random(0, config.jitter),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn()
    raise AssertionError("unreachable")


class VisparkApiError(Exception):
    def __init__(self, status_code: int, error: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.message = message

    @classmethod
    def from_response(cls, response: httpx.Response) -> VisparkApiError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return cls(
            response.status_code,
            body.get("error") or response.reason_phrase,
            body.get("message") or f"Request failed with status {response.status_code}.",
        )


def parse_delta_line(line: str) -> str | None:
    """Content of one ``{"choices":[{"delta":{"content":...}}]}`` line, None if unusable."""
    if not line.strip():
        return None
    try:
        parsed = json.loads(line)
        content = parsed["choices"][0]["delta"].get("content")
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        return None
    return content if isinstance(content, str) and content else None


class VisparkClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        access_token: str | None = None,
        http: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        self.access_token = access_token
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> VisparkClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    def _headers(self) -> dict[str, str]:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self.http.request(method, path, headers=self._headers(), **kwargs)
        if response.is_error:
            raise VisparkApiError.from_response(response)
        return response

    async def fetch_transcript(
        self, video_id: str, local: bool | None = None, lang: str | None = None
    ) -> TranscriptResult:
        payload: dict = {"videoId": video_id}
        if local is not None:
            payload["local"] = local
        if lang:
            payload["lang"] = lang
        response = await self._request("POST", "/transcript", json=payload)
        return TranscriptResult.model_validate(response.json())

    async def fetch_summary(self, segments: list[TranscriptSegment]) -> SummaryResult:
        response = await self._request("POST", "/summary", json=_segments_payload(segments))
        return SummaryResult.model_validate(response.json())

    async def open_summary_stream(self, segments: list[TranscriptSegment]) -> httpx.Response:
        request = self.http.build_request(
            "POST", "/summary/stream", json=_segments_payload(segments), headers=self._headers()
        )
        response = await self.http.send(request, stream=True)
        if response.is_error:
            await response.aread()
            await response.aclose()
            raise VisparkApiError.from_response(response)
        return response

    @staticmethod
    async def iter_summary_deltas(response: httpx.Response) -> AsyncIterator[str]:
        try:
            async for line in response.aiter_lines():
                content = parse_delta_line(line)
                if content is not None:
                    yield content
        finally:
            await response.aclose()

    async def stream_summary(self, segments: list[TranscriptSegment]) -> AsyncIterator[str]:
        response = await self.open_summary_stream(segments)
        async for content in self.iter_summary_deltas(response):
            yield content

    async def fetch_video_details(self, video_id: str) -> VideoMetadata | None:
        response = await self._request(
            "POST", "/video-details", json={"action": "getDetails", "videoId": video_id}
        )
        video = response.json().get("video")
        return VideoMetadata.model_validate(video) if video else None

    async def save_vispark(
        self,
        video_id: str,
        channel_id: str,
        summaries: list[str],
        metadata: VideoMetadata | None = None,
    ) -> VisparkOut:
        payload: dict = {"videoId": video_id, "channelId": channel_id, "summaries": summaries}
        if metadata is not None:
            payload["metadata"] = metadata.model_dump(by_alias=True, exclude_none=True)
        response = await self._request("POST", "/vispark", json=payload)
        return VisparkOut.model_validate(response.json())

    async def list_visparks(self, limit: int = 20, offset: int = 0) -> list[VisparkOut]:
        response = await self._request(
            "GET", "/visparks", params={"limit": limit, "offset": offset}
        )
        return [VisparkOut.model_validate(item) for item in response.json()["visparks"]]


def _segments_payload(segments: list[TranscriptSegment]) -> dict:
    return {"transcripts": [s.model_dump(by_alias=True, exclude_none=True) for s in segments]}
