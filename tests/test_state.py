"""Tests for pipeline state management."""

from unittest.mock import MagicMock

import pytest

from noteforged.state import PipelineStateEnum, PipelineStateManager


@pytest.fixture
def state_manager():
    """Create a state manager instance."""
    return PipelineStateManager()


def test_initial_state(state_manager):
    """Test the container starts idle and empty."""
    snapshot = state_manager.snapshot()
    assert snapshot.state == PipelineStateEnum.IDLE
    assert snapshot.transcription is None
    assert snapshot.summary is None
    assert snapshot.export_enabled is False
    assert snapshot.is_processing is False


def test_full_run(state_manager):
    """Test the happy path ends in DONE with both results."""
    capture_id = state_manager.begin_capture()
    assert state_manager.current_state == PipelineStateEnum.TRANSCRIBING
    assert state_manager.snapshot().is_loading_transcription

    assert state_manager.set_transcription(capture_id, "Today we discuss entropy.")
    assert state_manager.current_state == PipelineStateEnum.SUMMARIZING
    assert state_manager.snapshot().is_loading_summary
    assert state_manager.export_enabled

    assert state_manager.set_summary(capture_id, "Lecture covers entropy.")
    snapshot = state_manager.snapshot()
    assert snapshot.state == PipelineStateEnum.DONE
    assert snapshot.transcription == "Today we discuss entropy."
    assert snapshot.summary == "Lecture covers entropy."
    assert snapshot.is_processing is False


def test_transcription_failure(state_manager):
    """Test a transcription failure clears results and records the error."""
    capture_id = state_manager.begin_capture()

    assert state_manager.fail_transcription(capture_id, "unsupported format")

    snapshot = state_manager.snapshot()
    assert snapshot.state == PipelineStateEnum.FAILED_AT_TRANSCRIPTION
    assert snapshot.transcription is None
    assert snapshot.transcription_error == "unsupported format"
    assert snapshot.export_enabled is False
    assert snapshot.last_error == "unsupported format"


def test_empty_transcription_is_failure(state_manager):
    """Test empty transcription text never advances to summarizing."""
    capture_id = state_manager.begin_capture()

    assert state_manager.set_transcription(capture_id, "  ") is False

    assert state_manager.current_state == PipelineStateEnum.FAILED_AT_TRANSCRIPTION
    assert state_manager.transcription is None


def test_summary_failure_keeps_transcription(state_manager):
    """Test a summarization failure leaves the transcription intact."""
    capture_id = state_manager.begin_capture()
    state_manager.set_transcription(capture_id, "Today we discuss entropy.")

    assert state_manager.fail_summary(capture_id, "rate limited")

    snapshot = state_manager.snapshot()
    assert snapshot.state == PipelineStateEnum.FAILED_AT_SUMMARIZATION
    assert snapshot.transcription == "Today we discuss entropy."
    assert snapshot.summary is None
    assert snapshot.summary_error == "rate limited"
    assert snapshot.transcription_error is None
    assert snapshot.export_enabled is True


def test_new_capture_clears_results(state_manager):
    """Test beginning a capture clears prior results and errors."""
    first = state_manager.begin_capture()
    state_manager.set_transcription(first, "old")
    state_manager.fail_summary(first, "boom")

    second = state_manager.begin_capture()

    assert second == first + 1
    snapshot = state_manager.snapshot()
    assert snapshot.state == PipelineStateEnum.TRANSCRIBING
    assert snapshot.transcription is None
    assert snapshot.summary_error is None


def test_stale_results_ignored(state_manager):
    """Test results for superseded captures are dropped."""
    first = state_manager.begin_capture()
    second = state_manager.begin_capture()

    assert state_manager.set_transcription(first, "stale") is False
    assert state_manager.fail_transcription(first, "stale error") is False
    assert state_manager.set_summary(first, "stale") is False
    assert state_manager.fail_summary(first, "stale") is False

    snapshot = state_manager.snapshot()
    assert snapshot.capture_id == second
    assert snapshot.state == PipelineStateEnum.TRANSCRIBING
    assert snapshot.transcription is None


def test_out_of_order_transition_raises(state_manager):
    """Test the current capture can't skip stages."""
    capture_id = state_manager.begin_capture()

    with pytest.raises(RuntimeError, match="Invalid transition"):
        state_manager.set_summary(capture_id, "too early")


def test_observers_notified(state_manager):
    """Test observers receive snapshots on every change."""
    observer = MagicMock()
    state_manager.add_observer(observer)

    capture_id = state_manager.begin_capture()
    state_manager.set_transcription(capture_id, "text")

    assert observer.call_count == 2
    last_snapshot = observer.call_args.args[0]
    assert last_snapshot.state == PipelineStateEnum.SUMMARIZING


def test_observer_errors_do_not_break_state(state_manager):
    """Test a failing observer doesn't stop other observers or the change."""
    failing = MagicMock(side_effect=RuntimeError("observer boom"))
    working = MagicMock()
    state_manager.add_observer(failing)
    state_manager.add_observer(working)

    state_manager.begin_capture()

    working.assert_called_once()
    assert state_manager.current_state == PipelineStateEnum.TRANSCRIBING
