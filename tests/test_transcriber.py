"""Tests for transcriber module."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from noteforged.config import TranscriptionConfig
from noteforged.errors import ProviderFailure, TranscriptionFailed
from noteforged.payload import AudioPayload
from noteforged.transcriber import Transcriber


@pytest.fixture
def config():
    """Create a test config."""
    return TranscriptionConfig(model="whisper-1", api_key="test-key")


@pytest.fixture
def mock_client():
    """Create a mock provider client."""
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(return_value="Today we discuss entropy.\n")
    return client


@pytest.fixture
def transcriber(config, mock_client):
    """Create a transcriber with a mock client."""
    return Transcriber(config, client=mock_client)


@pytest.fixture
def payload():
    """Create a test payload."""
    return AudioPayload(data=b"mp3-bytes", media_type="audio/mpeg", name="lecture.mp3")


@pytest.mark.asyncio
async def test_transcribe_success(transcriber, mock_client, payload):
    """Test a successful transcription returns stripped text."""
    text = await transcriber.transcribe(payload)

    assert text == "Today we discuss entropy."
    mock_client.audio.transcriptions.create.assert_awaited_once_with(
        model="whisper-1",
        file=("lecture.mp3", b"mp3-bytes", "audio/mpeg"),
        response_format="text",
    )


@pytest.mark.asyncio
async def test_transcribe_passes_language(mock_client, payload):
    """Test the configured language is forwarded."""
    transcriber = Transcriber(TranscriptionConfig(language="de"), client=mock_client)

    await transcriber.transcribe(payload)

    kwargs = mock_client.audio.transcriptions.create.call_args.kwargs
    assert kwargs["language"] == "de"


@pytest.mark.asyncio
async def test_transcribe_object_response(transcriber, mock_client, payload):
    """Test responses carrying a text attribute are accepted."""
    mock_client.audio.transcriptions.create.return_value = SimpleNamespace(text="Hello")

    assert await transcriber.transcribe(payload) == "Hello"


@pytest.mark.asyncio
async def test_transcribe_empty_payload(transcriber, mock_client):
    """Test an empty payload is rejected without a network call."""
    with pytest.raises(TranscriptionFailed, match="empty"):
        await transcriber.transcribe(AudioPayload(data=b"", media_type="audio/webm"))

    mock_client.audio.transcriptions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_transcribe_empty_result(transcriber, mock_client, payload):
    """Test empty provider output counts as a failure."""
    mock_client.audio.transcriptions.create.return_value = "   \n"

    with pytest.raises(TranscriptionFailed, match="failed to produce text"):
        await transcriber.transcribe(payload)


@pytest.mark.asyncio
async def test_transcribe_provider_error(transcriber, mock_client, payload):
    """Test provider errors are wrapped and not retried."""
    request = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")
    mock_client.audio.transcriptions.create.side_effect = openai.BadRequestError(
        "unsupported format",
        response=httpx.Response(400, request=request),
        body=None,
    )

    with pytest.raises(TranscriptionFailed, match="unsupported format") as exc_info:
        await transcriber.transcribe(payload)

    assert isinstance(exc_info.value, ProviderFailure)
    assert isinstance(exc_info.value.__cause__, openai.BadRequestError)
    mock_client.audio.transcriptions.create.assert_awaited_once()


@pytest.mark.asyncio
async def test_transcribe_network_error(transcriber, mock_client, payload):
    """Test connection errors map to the same failure."""
    request = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")
    mock_client.audio.transcriptions.create.side_effect = openai.APIConnectionError(
        request=request
    )

    with pytest.raises(TranscriptionFailed):
        await transcriber.transcribe(payload)


@pytest.mark.asyncio
async def test_client_built_lazily_without_retries(config, payload):
    """Test the default client disables SDK retries."""
    with patch("noteforged.transcriber.AsyncOpenAI") as mock_openai:
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(return_value="text")
        mock_openai.return_value = client

        transcriber = Transcriber(config)
        mock_openai.assert_not_called()

        await transcriber.transcribe(payload)

        mock_openai.assert_called_once_with(
            api_key="test-key",
            base_url=None,
            timeout=config.timeout_s,
            max_retries=0,
        )
