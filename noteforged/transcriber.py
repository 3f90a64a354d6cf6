"""Audio transcription module using the OpenAI speech-to-text API."""

import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from .config import TranscriptionConfig
from .errors import TranscriptionFailed
from .payload import AudioPayload

logger = logging.getLogger(__name__)


def create_client(api_key: Optional[str], base_url: Optional[str], timeout: float) -> AsyncOpenAI:
    """Build a provider client that never retries on its own."""
    return AsyncOpenAI(
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
        max_retries=0,
    )


class Transcriber:
    """Sends audio payloads to the transcription provider."""

    def __init__(self, config: TranscriptionConfig, client: Optional[AsyncOpenAI] = None):
        """Initialize the transcriber.

        Args:
            config: Transcription configuration.
            client: Optional preconfigured client (built lazily otherwise).
        """
        self.config = config
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = create_client(
                self.config.api_key, self.config.base_url, self.config.timeout_s
            )
        return self._client

    async def transcribe(self, payload: AudioPayload) -> str:
        """Transcribe one payload to plain text.

        Args:
            payload: Encoded audio to transcribe.

        Returns:
            The transcription text, never empty.

        Raises:
            TranscriptionFailed: On network or provider errors, or empty text.
        """
        if not payload.data:
            raise TranscriptionFailed("Audio payload is empty")

        logger.info(
            f"Transcribing {payload.size} bytes ({payload.media_type}) "
            f"with model '{self.config.model}'"
        )

        request: Dict[str, Any] = {
            "model": self.config.model,
            "file": (payload.name, payload.data, payload.media_type),
            "response_format": "text",
        }
        if self.config.language:
            request["language"] = self.config.language

        try:
            result = await self._get_client().audio.transcriptions.create(**request)
        except Exception as e:
            logger.exception("Error during transcription")
            raise TranscriptionFailed(f"Error transcribing audio: {e}") from e

        # response_format="text" yields a plain string; older SDKs wrap it
        text = result if isinstance(result, str) else getattr(result, "text", None)
        text = (text or "").strip()
        if not text:
            raise TranscriptionFailed("Transcription failed to produce text")

        logger.info(f"Transcribed {len(text)} chars: {text[:100]}...")
        return text
