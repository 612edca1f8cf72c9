import json
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from vispark.app import create_app
from vispark.errors import UpstreamError
from vispark.schemas import SummaryResult
from vispark.services.llm import delta_line

TRANSCRIPTS = [{"text": "Hello", "offset": 0, "duration": 1000}, {"text": "World"}]


@pytest.fixture
async def client():
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


class TestSummary:
    async def test_returns_bullets(self, client):
        summarize = AsyncMock(return_value=SummaryResult(bullets=["One", "Two"]))
        with patch("vispark.routes.summary.LLMService.summarize", summarize):
            response = await client.post("/summary", json={"transcripts": TRANSCRIPTS})

        assert response.status_code == 200
        assert response.json() == {"bullets": ["One", "Two"]}
        segments = summarize.await_args.args[0]
        assert [s.text for s in segments] == ["Hello", "World"]

    async def test_empty_transcripts(self, client):
        response = await client.post("/summary", json={"transcripts": []})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing fields"

    async def test_llm_failure(self, client):
        summarize = AsyncMock(side_effect=UpstreamError("Summary generation failed: 429"))
        with patch("vispark.routes.summary.LLMService.summarize", summarize):
            response = await client.post("/summary", json={"transcripts": TRANSCRIPTS})

        assert response.status_code == 502
        assert response.json()["error"] == "Summary generation failed"


class TestSummaryStream:
    async def test_streams_ndjson(self, client):
        async def fake_stream(self, segments):
            yield delta_line('{"bullets": ')
            yield delta_line('["One"]}')

        with patch("vispark.routes.summary.LLMService.stream_summary", fake_stream):
            response = await client.post("/summary/stream", json={"transcripts": TRANSCRIPTS})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        lines = [json.loads(line) for line in response.text.splitlines()]
        content = "".join(line["choices"][0]["delta"]["content"] for line in lines)
        assert json.loads(content) == {"bullets": ["One"]}

    async def test_stream_open_failure_is_502(self, client):
        async def failing_stream(self, segments):
            raise UpstreamError("Summary generation failed: unauthorized")
            yield

        with patch("vispark.routes.summary.LLMService.stream_summary", failing_stream):
            response = await client.post("/summary/stream", json={"transcripts": TRANSCRIPTS})

        assert response.status_code == 502
        assert response.json()["error"] == "Summary generation failed"

    async def test_empty_stream(self, client):
        async def empty_stream(self, segments):
            return
            yield

        with patch("vispark.routes.summary.LLMService.stream_summary", empty_stream):
            response = await client.post("/summary/stream", json={"transcripts": TRANSCRIPTS})

        assert response.status_code == 200
        assert response.text == ""
