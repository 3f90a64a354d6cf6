"""Error types raised by noteforged components."""


class NoteforgeError(Exception):
    """Base class for noteforged errors."""


class AcquisitionFailure(NoteforgeError):
    """The recording device could not be acquired or yielded no audio."""


class ProviderFailure(NoteforgeError):
    """A provider request did not yield usable text."""

    stage = "provider"


class TranscriptionFailed(ProviderFailure):
    """The transcription provider failed or returned no text."""

    stage = "transcription"


class SummarizationFailed(ProviderFailure):
    """The summarization provider failed or returned no text."""

    stage = "summarization"


class ExportUnavailable(NoteforgeError):
    """Export was requested while no panel has content."""
