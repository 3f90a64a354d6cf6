"""Tests for summarizer module."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from noteforged.config import SummarizationConfig
from noteforged.errors import SummarizationFailed
from noteforged.summarizer import LENGTH_DIRECTIVES, STYLE_DIRECTIVES, Summarizer


def make_completion(content):
    """Build a minimal chat completion response."""
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def mock_client():
    """Create a mock provider client."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=make_completion(" Lecture covers entropy. ")
    )
    return client


@pytest.fixture
def summarizer(mock_client):
    """Create a summarizer with a mock client."""
    return Summarizer(SummarizationConfig(model="gpt-4o-mini"), client=mock_client)


@pytest.mark.asyncio
async def test_summarize_success(summarizer, mock_client):
    """Test a successful summary is stripped and returned."""
    summary = await summarizer.summarize("Today we discuss entropy.")

    assert summary == "Lecture covers entropy."
    mock_client.chat.completions.create.assert_awaited_once()
    kwargs = mock_client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"][-1] == {
        "role": "user",
        "content": "Today we discuss entropy.",
    }


def test_build_messages_uses_directives(mock_client):
    """Test style and length directives end up in the system prompt."""
    summarizer = Summarizer(
        SummarizationConfig(style="bullets", length="detailed"), client=mock_client
    )

    system = summarizer.build_messages("text")[0]

    assert system["role"] == "system"
    assert STYLE_DIRECTIVES["bullets"] in system["content"]
    assert LENGTH_DIRECTIVES["detailed"] in system["content"]


@pytest.mark.asyncio
async def test_summarize_empty_input(summarizer, mock_client):
    """Test empty input is rejected without a network call."""
    with pytest.raises(SummarizationFailed):
        await summarizer.summarize("   ")

    mock_client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_summarize_empty_output(summarizer, mock_client):
    """Test a missing or empty completion is a failure."""
    mock_client.chat.completions.create.return_value = make_completion(None)

    with pytest.raises(SummarizationFailed, match="failed to produce text"):
        await summarizer.summarize("Today we discuss entropy.")


@pytest.mark.asyncio
async def test_summarize_provider_error(summarizer, mock_client):
    """Test provider errors are wrapped and not retried."""
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    mock_client.chat.completions.create.side_effect = openai.RateLimitError(
        "rate limited",
        response=httpx.Response(429, request=request),
        body=None,
    )

    with pytest.raises(SummarizationFailed, match="rate limited"):
        await summarizer.summarize("Today we discuss entropy.")

    mock_client.chat.completions.create.assert_awaited_once()


@pytest.mark.asyncio
async def test_summarize_malformed_response(summarizer, mock_client):
    """Test a response without choices is a failure."""
    mock_client.chat.completions.create.return_value = SimpleNamespace(choices=[])

    with pytest.raises(SummarizationFailed):
        await summarizer.summarize("Today we discuss entropy.")
