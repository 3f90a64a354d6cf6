"""Summarization module using the OpenAI chat completions API."""

import logging
from typing import Dict, List, Optional

from openai import AsyncOpenAI

from .config import SummarizationConfig
from .errors import SummarizationFailed
from .transcriber import create_client

logger = logging.getLogger(__name__)

STYLE_DIRECTIVES = {
    "paragraph": "Write the summary as flowing prose paragraphs.",
    "bullets": "Write the summary as a list of concise bullet points.",
}

LENGTH_DIRECTIVES = {
    "short": "Keep it to a few sentences covering only the main idea.",
    "medium": "Cover the main topics and key concepts in moderate detail.",
    "detailed": "Cover every topic, definition and example discussed.",
}

SYSTEM_PROMPT = (
    "You are an assistant that turns lecture transcriptions into study notes. "
    "Summarize the lecture the user provides. {style} {length} "
    "Only use information present in the transcription."
)


class Summarizer:
    """Sends transcriptions to the summarization provider."""

    def __init__(self, config: SummarizationConfig, client: Optional[AsyncOpenAI] = None):
        self.config = config
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = create_client(
                self.config.api_key, self.config.base_url, self.config.timeout_s
            )
        return self._client

    def build_messages(self, text: str) -> List[Dict[str, str]]:
        """Build the chat messages for one summarization request."""
        system = SYSTEM_PROMPT.format(
            style=STYLE_DIRECTIVES[self.config.style],
            length=LENGTH_DIRECTIVES[self.config.length],
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": text},
        ]

    async def summarize(self, text: str) -> str:
        """Summarize transcribed text.

        Raises:
            SummarizationFailed: On network or provider errors, or empty output.
        """
        if not text or not text.strip():
            raise SummarizationFailed("Nothing to summarize")

        logger.info(
            f"Summarizing {len(text)} chars with model '{self.config.model}' "
            f"(style: {self.config.style}, length: {self.config.length})"
        )

        try:
            response = await self._get_client().chat.completions.create(
                model=self.config.model,
                messages=self.build_messages(text),
                temperature=self.config.temperature,
            )
            summary = response.choices[0].message.content
        except Exception as e:
            logger.exception("Error during summarization")
            raise SummarizationFailed(f"Error summarizing text: {e}") from e

        summary = (summary or "").strip()
        if not summary:
            raise SummarizationFailed("Summarization failed to produce text")

        logger.info(f"Summarized into {len(summary)} chars")
        return summary
