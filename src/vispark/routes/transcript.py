from __future__ import annotations

import logging

from fastapi import APIRouter

from vispark.errors import ApiError, UpstreamError
from vispark.schemas import CamelModel, NonEmptyStr, TranscriptResult
from vispark.services.transcripts import TranscriptService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transcript"])


class TranscriptRequest(CamelModel):
    video_id: NonEmptyStr
    lang: str | None = None
    local: bool | None = None


@router.post("/transcript", response_model=TranscriptResult, response_model_by_alias=True)
async def fetch_transcript(body: TranscriptRequest):
    service = TranscriptService()
    try:
        return await service.fetch(body.video_id, lang=body.lang or None, local=body.local)
    except UpstreamError as exc:
        logger.warning("Transcript fetch failed for %s: %s", body.video_id, exc)
        raise ApiError(502, "Transcript fetch failed", str(exc))
