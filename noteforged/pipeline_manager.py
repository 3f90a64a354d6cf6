import asyncio
import logging
from pathlib import Path
from typing import Optional, Set, Tuple

from .config import AppConfig
from .display import PanelView, render_panel
from .errors import ExportUnavailable, SummarizationFailed, TranscriptionFailed
from .exporter import NoteExporter
from .notifications import NotificationCenter
from .payload import AudioPayload
from .state import PipelineStateManager
from .summarizer import Summarizer
from .transcriber import Transcriber


logger = logging.getLogger(__name__)

TRANSCRIPTION_TITLE = "Transcription"
SUMMARY_TITLE = "Summary"


class PipelineManager:
    """Sequences transcription and summarization for each capture."""

    def __init__(
        self,
        config: AppConfig,
        state_manager: PipelineStateManager,
        notifications: NotificationCenter,
        transcriber: Optional[Transcriber] = None,
        summarizer: Optional[Summarizer] = None,
        exporter: Optional[NoteExporter] = None,
    ):
        """Initialize the pipeline manager."""
        self.config = config
        self.state_manager = state_manager
        self.notifications = notifications

        # Create component instances
        self.transcriber = transcriber or Transcriber(config.transcription)
        self.summarizer = summarizer or Summarizer(config.summarization)
        self.exporter = exporter or NoteExporter(config.export)

        self._tasks: Set[asyncio.Task] = set()

    async def submit(self, payload: AudioPayload) -> int:
        """Start a pipeline run for a new capture.

        Prior results are cleared immediately. Runs of earlier captures keep
        going until their provider call returns, but their results are dropped.

        Returns:
            The capture id of the new run.
        """
        capture_id = self.state_manager.begin_capture()
        logger.info(
            f"Capture {capture_id}: received {payload.size} byte payload ({payload.media_type})"
        )

        task = asyncio.create_task(self._run(capture_id, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return capture_id

    def _fail_transcription(self, capture_id: int, message: str) -> None:
        if self.state_manager.fail_transcription(capture_id, message):
            self.notifications.publish(
                "Transcription Failed",
                "Could not transcribe the audio. Please try again.",
                variant="destructive",
            )

    def _fail_summary(self, capture_id: int, message: str) -> None:
        if self.state_manager.fail_summary(capture_id, message):
            self.notifications.publish(
                "Summarization Failed",
                "Could not summarize the text. Please try again.",
                variant="destructive",
            )

    async def _run(self, capture_id: int, payload: AudioPayload) -> None:
        """Transcribe, then summarize, one capture.

        Every failure ends the current stage; only cancellation escapes.
        """
        try:
            text = await self.transcriber.transcribe(payload)
            if not text or not text.strip():
                raise TranscriptionFailed("Transcription failed to produce text")
        except TranscriptionFailed as e:
            logger.error(f"Capture {capture_id}: transcription failed: {e}")
            self._fail_transcription(capture_id, str(e))
            return
        except Exception as e:
            logger.exception(f"Capture {capture_id}: unexpected transcription error")
            self._fail_transcription(capture_id, f"Unexpected error: {e}")
            return

        if not self.state_manager.set_transcription(capture_id, text):
            return

        try:
            summary = await self.summarizer.summarize(text)
            if not summary or not summary.strip():
                raise SummarizationFailed("Summarization failed to produce text")
        except SummarizationFailed as e:
            logger.error(f"Capture {capture_id}: summarization failed: {e}")
            self._fail_summary(capture_id, str(e))
            return
        except Exception as e:
            logger.exception(f"Capture {capture_id}: unexpected summarization error")
            self._fail_summary(capture_id, f"Unexpected error: {e}")
            return

        if self.state_manager.set_summary(capture_id, summary):
            logger.info(f"Capture {capture_id}: pipeline done")

    def current_panels(self) -> Tuple[PanelView, PanelView]:
        """Render the transcription and summary panels."""
        snapshot = self.state_manager.snapshot()
        transcription = render_panel(
            TRANSCRIPTION_TITLE,
            snapshot.transcription,
            snapshot.is_loading_transcription,
            snapshot.transcription_error,
        )
        summary = render_panel(
            SUMMARY_TITLE,
            snapshot.summary,
            snapshot.is_loading_summary,
            snapshot.summary_error,
        )
        return transcription, summary

    async def export_notes(self) -> Path:
        """Export the displayed panels.

        Raises:
            ExportUnavailable: If neither panel has content.
        """
        if not self.state_manager.export_enabled:
            raise ExportUnavailable("Nothing to export yet")

        return await self.exporter.export(self.current_panels())

    async def wait_idle(self) -> None:
        """Wait for all outstanding pipeline runs to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel outstanding pipeline runs."""
        if not self._tasks:
            return

        logger.info(f"Cancelling {len(self._tasks)} pipeline runs...")
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
