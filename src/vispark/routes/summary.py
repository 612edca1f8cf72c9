from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from pydantic import Field

from vispark.errors import ApiError, UpstreamError
from vispark.schemas import CamelModel, SummaryResult, TranscriptSegment
from vispark.services.llm import LLMService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/summary", tags=["summary"])


class SummaryRequest(CamelModel):
    transcripts: list[TranscriptSegment] = Field(min_length=1)


@router.post("", response_model=SummaryResult)
async def summarize(body: SummaryRequest):
    try:
        return await LLMService().summarize(body.transcripts)
    except UpstreamError as exc:
        raise ApiError(502, "Summary generation failed", str(exc))


@router.post("/stream")
async def summarize_stream(body: SummaryRequest):
    stream = LLMService().stream_summary(body.transcripts)
    # the first chunk is pulled before responding so an LLM failure is still a 502
    try:
        first = await anext(stream)
    except StopAsyncIteration:
        first = None
    except UpstreamError as exc:
        raise ApiError(502, "Summary generation failed", str(exc))

    async def chunks() -> AsyncIterator[str]:
        if first is not None:
            yield first
        try:
            async for line in stream:
                yield line
        except Exception:
            logger.exception("Summary stream broke off")
            raise

    return StreamingResponse(chunks(), media_type="application/x-ndjson")
