from __future__ import annotations

import asyncio
import html
import logging
import re
from collections.abc import Awaitable, Callable

import httpx
from youtube_transcript_api import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    YouTubeTranscriptApi,
)

from vispark.config import settings
from vispark.errors import UpstreamError
from vispark.schemas import TranscriptResult, TranscriptSegment
from vispark.services.http import client_session, upstream_payload

logger = logging.getLogger(__name__)

_AVAILABLE_LANGUAGES_RE = re.compile(r"Available languages: ([^.]+)")

Fetcher = Callable[[str | None], Awaitable[list[TranscriptSegment]]]


def available_language(message: str) -> str | None:
    """First language listed in a provider's "Available languages: ..." error."""
    match = _AVAILABLE_LANGUAGES_RE.search(message)
    if not match:
        return None
    languages = [lang.strip() for lang in match.group(1).split(",") if lang.strip()]
    return languages[0] if languages else None


def format_transcript(segments: list[TranscriptSegment]) -> str:
    return "\n".join(s.text.strip() for s in segments if s.text.strip())


def _seconds_to_ms(value) -> float:
    try:
        return round(float(value) * 1000, 3)
    except (TypeError, ValueError):
        return 0


def _clean(text: str) -> str:
    # some providers double-escape entities ("&amp;#39;")
    return html.unescape(html.unescape(text or "")).strip()


class TranscriptService:
    """Fetch transcripts, trying each configured provider in turn.

    Offsets and durations are always returned in milliseconds.
    """

    def __init__(self, http: httpx.AsyncClient | None = None):
        self.http = http

    async def fetch(
        self, video_id: str, lang: str | None = None, local: bool | None = None
    ) -> TranscriptResult:
        use_local = settings.is_development if local is None else local
        logger.info("Fetching transcript for %s (lang=%s, local=%s)", video_id, lang, use_local)

        if use_local:
            segments = await self.fetch_local(video_id, lang)
            return self._result(video_id, segments, lang)

        providers: list[tuple[str, Fetcher]] = []
        if settings.supadata_api_key:
            providers.append(("supadata", lambda code: self.fetch_supadata(video_id, code)))
        if settings.youtube_transcript_api_token:
            providers.append(
                ("youtube-transcript.io", lambda code: self.fetch_transcript_io(video_id, code))
            )
        if settings.local_transcript_url:
            providers.append(("relay", lambda code: self.fetch_relay(video_id, code)))

        for name, fetcher in providers:
            try:
                segments = await self._with_language_fallback(fetcher, lang)
            except (UpstreamError, httpx.HTTPError) as exc:
                logger.warning("Transcript provider %s failed for %s: %s", name, video_id, exc)
                continue
            logger.info("Fetched transcript for %s with %s", video_id, name)
            return self._result(video_id, segments, lang)

        raise UpstreamError("Unable to retrieve transcript using available methods.")

    @staticmethod
    def _result(
        video_id: str, segments: list[TranscriptSegment], lang: str | None
    ) -> TranscriptResult:
        for segment in segments:
            segment.lang = segment.lang or lang
        return TranscriptResult(video_id=video_id, transcript=segments, lang=lang)

    @staticmethod
    async def _with_language_fallback(fetcher: Fetcher, lang: str | None) -> list[TranscriptSegment]:
        try:
            return await fetcher(lang)
        except UpstreamError as exc:
            fallback = available_language(str(exc))
            if fallback is None or fallback == lang:
                raise
            logger.info("Language %s not available, falling back to %s", lang, fallback)
            return await fetcher(fallback)

    async def fetch_local(self, video_id: str, lang: str | None) -> list[TranscriptSegment]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._fetch_local_sync, video_id, lang)
        except CouldNotRetrieveTranscript as exc:
            raise UpstreamError(f"Transcript unavailable for {video_id}: {exc}") from exc

    @staticmethod
    def _fetch_local_sync(video_id: str, lang: str | None) -> list[TranscriptSegment]:
        api = YouTubeTranscriptApi()
        try:
            fetched = api.fetch(video_id, languages=[lang] if lang else ["en"])
        except NoTranscriptFound:
            transcripts = list(api.list(video_id))
            if not transcripts:
                raise
            logger.info(
                "No %s transcript for %s, using %s",
                lang or "en",
                video_id,
                transcripts[0].language_code,
            )
            fetched = transcripts[0].fetch()

        return [
            TranscriptSegment(
                text=_clean(snippet.text),
                offset=_seconds_to_ms(snippet.start),
                duration=_seconds_to_ms(snippet.duration),
                lang=fetched.language_code,
            )
            for snippet in fetched
        ]

    async def fetch_supadata(self, video_id: str, lang: str | None) -> list[TranscriptSegment]:
        params = {"videoId": video_id}
        if lang:
            params["lang"] = lang
        async with client_session(self.http) as client:
            response = await client.get(
                f"{settings.supadata_api_url.rstrip('/')}/youtube/transcript",
                params=params,
                headers={"x-api-key": settings.supadata_api_key},
            )
        if response.is_error:
            raise UpstreamError(f"Supadata error {response.status_code}: {response.text}")

        with upstream_payload("Supadata"):
            data = response.json()
            return [
                TranscriptSegment(
                    text=_clean(segment.get("text", "")),
                    offset=segment.get("offset") or 0,
                    duration=segment.get("duration") or 0,
                    lang=segment.get("lang") or data.get("lang"),
                )
                for segment in data.get("content") or []
            ]

    async def fetch_transcript_io(self, video_id: str, lang: str | None) -> list[TranscriptSegment]:
        async with client_session(self.http) as client:
            response = await client.post(
                settings.youtube_transcript_api_url,
                json={"ids": [video_id]},
                headers={"Authorization": f"Basic {settings.youtube_transcript_api_token}"},
            )
        if response.is_error:
            raise UpstreamError(
                f"YouTube transcript API failed with status: {response.status_code}"
            )

        with upstream_payload("YouTube transcript API"):
            data = response.json()
            entry = data[0] if isinstance(data, list) and data else {}
            tracks = entry.get("tracks") or []
            if not tracks:
                raise UpstreamError(f"YouTube transcript API returned no tracks for {video_id}")
            track = next((t for t in tracks if lang and t.get("language") == lang), tracks[0])
            return [
                TranscriptSegment(
                    text=_clean(segment.get("text", "")),
                    offset=_seconds_to_ms(segment.get("start")),
                    duration=_seconds_to_ms(segment.get("dur")),
                    lang=track.get("language"),
                )
                for segment in track.get("transcript") or []
            ]

    async def fetch_relay(self, video_id: str, lang: str | None) -> list[TranscriptSegment]:
        async with client_session(self.http) as client:
            response = await client.post(
                f"{settings.local_transcript_url.rstrip('/')}/transcript",
                json={"videoId": video_id, "lang": lang, "local": True},
            )
        if response.is_error:
            raise UpstreamError(f"Local fetch failed with status: {response.status_code}")
        with upstream_payload("transcript relay"):
            return TranscriptResult.model_validate(response.json()).transcript
