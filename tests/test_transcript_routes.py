from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from vispark.app import create_app
from vispark.config import settings
from vispark.errors import UpstreamError
from vispark.schemas import TranscriptResult, TranscriptSegment


@pytest.fixture
async def client():
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def test_returns_camel_case_transcript(client):
    result = TranscriptResult(
        video_id="vid1",
        transcript=[TranscriptSegment(text="hi", offset=1500, duration=500, lang="en")],
        lang="en",
    )
    fetch = AsyncMock(return_value=result)
    with patch("vispark.routes.transcript.TranscriptService.fetch", fetch):
        response = await client.post(
            "/transcript", json={"videoId": "vid1", "lang": "en", "local": False}
        )

    assert response.status_code == 200
    assert response.json() == {
        "videoId": "vid1",
        "transcript": [{"text": "hi", "duration": 500, "offset": 1500, "lang": "en"}],
        "lang": "en",
    }
    fetch.assert_awaited_once_with("vid1", lang="en", local=False)


async def test_local_flag_defaults_to_environment(client):
    fetch = AsyncMock(return_value=TranscriptResult(video_id="vid1", transcript=[]))
    with patch("vispark.routes.transcript.TranscriptService.fetch", fetch):
        await client.post("/transcript", json={"videoId": "vid1"})

    assert fetch.await_args.kwargs["local"] is None


async def test_all_providers_failed(client):
    fetch = AsyncMock(
        side_effect=UpstreamError("Unable to retrieve transcript using available methods.")
    )
    with patch("vispark.routes.transcript.TranscriptService.fetch", fetch):
        response = await client.post("/transcript", json={"videoId": "vid1"})

    assert response.status_code == 502
    assert response.json() == {
        "error": "Transcript fetch failed",
        "message": "Unable to retrieve transcript using available methods.",
    }


async def test_malformed_provider_body_is_bad_gateway(client, monkeypatch):
    monkeypatch.setattr(settings, "supadata_api_key", "supa-key")
    monkeypatch.setattr(settings, "youtube_transcript_api_token", "")
    monkeypatch.setattr(settings, "local_transcript_url", "")

    @asynccontextmanager
    async def html_session(http=None):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, text="<html>down</html>"))
        async with httpx.AsyncClient(transport=transport) as mock_client:
            yield mock_client

    with patch("vispark.services.transcripts.client_session", html_session):
        response = await client.post("/transcript", json={"videoId": "vid1", "local": False})

    assert response.status_code == 502
    assert response.json()["error"] == "Transcript fetch failed"
