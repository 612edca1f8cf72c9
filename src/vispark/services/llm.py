from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

import litellm

from vispark.config import settings
from vispark.errors import UpstreamError
from vispark.schemas import SummaryResult, TranscriptSegment

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 60_000

SUMMARY_PROMPT = """\
You are an expert summarizer of YouTube videos. Read the transcript below and \
write the key takeaways as short, self-contained bullet points. State the content \
directly; never refer to "the video" or "the speaker". Use the transcript's language.

Return JSON: {{"bullets": ["string", ...]}}
Write between 3 and 10 bullets.

Transcript:
{transcript}
"""


def _format_transcript(segments: list[TranscriptSegment]) -> str:
    text = " ".join(s.text.strip() for s in segments if s.text.strip())
    return text[:MAX_TRANSCRIPT_CHARS]


def parse_bullets(text: str) -> list[str]:
    """Bullets from a ``{"bullets": [...]}`` reply; unparseable text is one bullet."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return [text] if text and text.strip() else []
    bullets = data.get("bullets") if isinstance(data, dict) else None
    if not isinstance(bullets, list):
        return []
    return [str(b).strip() for b in bullets if str(b).strip()]


def delta_line(content: str) -> str:
    """One newline-delimited JSON fragment in the OpenAI streaming delta shape."""
    return json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n"


class LLMService:
    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        api_base: str | None = None,
        extra_headers: dict[str, str] | None = None,
        temperature: float | None = None,
        timeout: int | None = None,
    ):
        self.model = model or settings.llm_model
        self.api_key = api_key or settings.llm_api_key
        self.api_base = api_base or settings.llm_api_base
        self.extra_headers = extra_headers or {}
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.timeout = timeout or settings.llm_timeout

    def _completion_kwargs(self, prompt: str) -> dict:
        kwargs = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {"type": "json_object"},
            "temperature": self.temperature,
            "timeout": self.timeout,
            "api_key": self.api_key or None,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers
        return kwargs

    async def _call(self, prompt: str) -> str:
        response = await litellm.acompletion(**self._completion_kwargs(prompt))
        return response.choices[0].message.content or ""

    async def summarize(
        self, segments: list[TranscriptSegment], max_retries: int = 2
    ) -> SummaryResult:
        prompt = SUMMARY_PROMPT.format(transcript=_format_transcript(segments))
        for attempt in range(max_retries + 1):
            try:
                text = await self._call(prompt)
                return SummaryResult(bullets=parse_bullets(text))
            except Exception as exc:
                if attempt == max_retries:
                    logger.exception("LLM summary failed after retries")
                    raise UpstreamError(f"Summary generation failed: {exc}") from exc
                logger.warning("LLM summary attempt %d failed: %s", attempt + 1, exc)
        raise UpstreamError("Summary generation failed")

    async def stream_summary(self, segments: list[TranscriptSegment]) -> AsyncIterator[str]:
        """Yield the summary as newline-delimited JSON delta fragments."""
        prompt = SUMMARY_PROMPT.format(transcript=_format_transcript(segments))
        try:
            stream = await litellm.acompletion(**self._completion_kwargs(prompt), stream=True)
        except Exception as exc:
            logger.exception("LLM summary stream could not be opened")
            raise UpstreamError(f"Summary generation failed: {exc}") from exc

        async for chunk in stream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield delta_line(content)
