"""State management for the lecture pipeline."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class PipelineStateEnum(str, Enum):
    """Possible states of the transcribe-then-summarize pipeline."""

    IDLE = "Idle"
    TRANSCRIBING = "Transcribing"
    SUMMARIZING = "Summarizing"
    DONE = "Done"
    FAILED_AT_TRANSCRIPTION = "FailedAtTranscription"
    FAILED_AT_SUMMARIZATION = "FailedAtSummarization"


@dataclass(frozen=True)
class PipelineSnapshot:
    """Read-only copy of the pipeline state."""

    state: PipelineStateEnum
    capture_id: int
    transcription: Optional[str]
    summary: Optional[str]
    transcription_error: Optional[str]
    summary_error: Optional[str]

    @property
    def is_loading_transcription(self) -> bool:
        return self.state == PipelineStateEnum.TRANSCRIBING

    @property
    def is_loading_summary(self) -> bool:
        return self.state == PipelineStateEnum.SUMMARIZING

    @property
    def is_processing(self) -> bool:
        return self.is_loading_transcription or self.is_loading_summary

    @property
    def export_enabled(self) -> bool:
        return bool(self.transcription) or bool(self.summary)

    @property
    def last_error(self) -> Optional[str]:
        return self.summary_error or self.transcription_error


class PipelineStateManager:
    """Holds the results and state of the current pipeline run.

    Every mutator takes the capture id it belongs to. Calls for a capture
    that is no longer current are ignored and return False, so completions
    of superseded runs never touch the displayed results.
    """

    def __init__(self):
        """Initialize state manager with IDLE state."""
        self._state: PipelineStateEnum = PipelineStateEnum.IDLE
        self._capture_id = 0
        self._transcription: Optional[str] = None
        self._summary: Optional[str] = None
        self._transcription_error: Optional[str] = None
        self._summary_error: Optional[str] = None
        self._observers: List[Callable[[PipelineSnapshot], Any]] = []

    @property
    def current_state(self) -> PipelineStateEnum:
        """Get the current state of the pipeline."""
        return self._state

    @property
    def capture_id(self) -> int:
        return self._capture_id

    @property
    def transcription(self) -> Optional[str]:
        return self._transcription

    @property
    def summary(self) -> Optional[str]:
        return self._summary

    @property
    def export_enabled(self) -> bool:
        return self.snapshot().export_enabled

    @property
    def is_processing(self) -> bool:
        return self.snapshot().is_processing

    def snapshot(self) -> PipelineSnapshot:
        return PipelineSnapshot(
            state=self._state,
            capture_id=self._capture_id,
            transcription=self._transcription,
            summary=self._summary,
            transcription_error=self._transcription_error,
            summary_error=self._summary_error,
        )

    def add_observer(self, observer: Callable[[PipelineSnapshot], Any]) -> None:
        """Add an observer callback for state changes.

        The callback receives a snapshot of the new state.
        """
        self._observers.append(observer)

    def _notify_observers(self) -> None:
        """Notify all observers of the current state."""
        snapshot = self.snapshot()
        for observer in self._observers:
            try:
                observer(snapshot)
            except Exception:
                logger.exception("State observer failed")

    def is_current(self, capture_id: int) -> bool:
        return capture_id == self._capture_id

    def _check_transition(self, capture_id: int, expected: PipelineStateEnum) -> bool:
        if not self.is_current(capture_id):
            logger.info(
                f"Ignoring stale result for capture {capture_id} "
                f"(current: {self._capture_id})"
            )
            return False
        if self._state != expected:
            raise RuntimeError(
                f"Invalid transition for capture {capture_id}: "
                f"expected {expected.value}, state is {self._state.value}"
            )
        return True

    def begin_capture(self) -> int:
        """Start a new pipeline run, clearing prior results.

        Returns:
            The id of the new capture.
        """
        self._capture_id += 1
        self._transcription = None
        self._summary = None
        self._transcription_error = None
        self._summary_error = None
        self._state = PipelineStateEnum.TRANSCRIBING
        logger.debug(f"Began capture {self._capture_id}")
        self._notify_observers()
        return self._capture_id

    def set_transcription(self, capture_id: int, text: str) -> bool:
        """Store a transcription and move on to summarizing.

        Empty text counts as a transcription failure.

        Returns:
            True only if the pipeline moved on to summarizing.
        """
        if not text or not text.strip():
            self.fail_transcription(capture_id, "Transcription failed to produce text")
            return False
        if not self._check_transition(capture_id, PipelineStateEnum.TRANSCRIBING):
            return False

        self._transcription = text
        self._state = PipelineStateEnum.SUMMARIZING
        self._notify_observers()
        return True

    def fail_transcription(self, capture_id: int, message: str) -> bool:
        if not self._check_transition(capture_id, PipelineStateEnum.TRANSCRIBING):
            return False

        self._transcription = None
        self._transcription_error = message
        self._state = PipelineStateEnum.FAILED_AT_TRANSCRIPTION
        self._notify_observers()
        return True

    def set_summary(self, capture_id: int, text: str) -> bool:
        if not self._check_transition(capture_id, PipelineStateEnum.SUMMARIZING):
            return False

        self._summary = text
        self._state = PipelineStateEnum.DONE
        self._notify_observers()
        return True

    def fail_summary(self, capture_id: int, message: str) -> bool:
        """Record a summarization failure, keeping the transcription."""
        if not self._check_transition(capture_id, PipelineStateEnum.SUMMARIZING):
            return False

        self._summary = None
        self._summary_error = message
        self._state = PipelineStateEnum.FAILED_AT_SUMMARIZATION
        self._notify_observers()
        return True
