import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from vispark.errors import UpstreamError
from vispark.schemas import TranscriptSegment
from vispark.services.llm import LLMService, delta_line, parse_bullets


@pytest.fixture
def llm():
    return LLMService(model="test-model", api_key="test-key")


@pytest.fixture
def segments():
    return [TranscriptSegment(text="First point."), TranscriptSegment(text="Second point.")]


def _mock_response(content: str):
    mock = AsyncMock()
    mock.return_value.choices = [AsyncMock(message=AsyncMock(content=content))]
    return mock


def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


async def _stream(*chunks):
    for chunk in chunks:
        yield chunk


class TestParseBullets:
    def test_json_bullets(self):
        assert parse_bullets('{"bullets": ["a", " b ", ""]}') == ["a", "b"]

    def test_plain_text_is_one_bullet(self):
        assert parse_bullets("Just a sentence.") == ["Just a sentence."]

    def test_empty_text(self):
        assert parse_bullets("") == []

    @pytest.mark.parametrize("text", ['"text"', "5", "[1, 2]", '{"summary": "x"}', '{"bullets": "x"}'])
    def test_json_without_bullet_list(self, text):
        assert parse_bullets(text) == []


async def test_summarize(llm, segments):
    mock = _mock_response('{"bullets": ["One", "Two"]}')
    with patch("vispark.services.llm.litellm.acompletion", mock):
        result = await llm.summarize(segments)

    assert result.bullets == ["One", "Two"]
    kwargs = mock.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert "First point. Second point." in kwargs["messages"][0]["content"]


async def test_summarize_retries_then_succeeds(llm, segments):
    mock = _mock_response('{"bullets": ["ok"]}')
    response = mock.return_value
    mock.side_effect = [Exception("rate limited"), response]
    with patch("vispark.services.llm.litellm.acompletion", mock):
        result = await llm.summarize(segments, max_retries=1)

    assert result.bullets == ["ok"]
    assert mock.await_count == 2


async def test_summarize_raises_upstream_error(llm, segments):
    mock = AsyncMock(side_effect=Exception("API error"))
    with patch("vispark.services.llm.litellm.acompletion", mock):
        with pytest.raises(UpstreamError):
            await llm.summarize(segments, max_retries=0)


async def test_stream_summary_yields_delta_lines(llm, segments):
    mock = AsyncMock(return_value=_stream(_chunk('{"bul'), _chunk(None), _chunk('lets": []}')))
    with patch("vispark.services.llm.litellm.acompletion", mock):
        lines = [line async for line in llm.stream_summary(segments)]

    assert mock.call_args.kwargs["stream"] is True
    assert lines == [delta_line('{"bul'), delta_line('lets": []}')]
    assert json.loads(lines[0])["choices"][0]["delta"]["content"] == '{"bul'


async def test_stream_summary_open_failure(llm, segments):
    mock = AsyncMock(side_effect=Exception("connection refused"))
    with patch("vispark.services.llm.litellm.acompletion", mock):
        with pytest.raises(UpstreamError):
            async for _ in llm.stream_summary(segments):
                pass


async def test_extra_headers_and_base_are_forwarded(segments):
    llm = LLMService(
        model="openai/llama", api_key="k", api_base="https://provider.example/v1",
        extra_headers={"X-Phala-Signature": "sig"},
    )
    mock = _mock_response('{"bullets": []}')
    with patch("vispark.services.llm.litellm.acompletion", mock):
        await llm.summarize(segments)

    kwargs = mock.call_args.kwargs
    assert kwargs["api_base"] == "https://provider.example/v1"
    assert kwargs["extra_headers"] == {"X-Phala-Signature": "sig"}
