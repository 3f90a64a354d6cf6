"""IPC command and response models for noteforged daemon."""

import json
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, RootModel

from .display import PanelView
from .notifications import Notification


class PanelName(str, Enum):
    """Display panels that can be addressed by commands."""

    TRANSCRIPTION = "transcription"
    SUMMARY = "summary"


class UploadCommand(BaseModel):
    """Command to submit an audio file."""

    command: Literal["upload"] = "upload"
    path: Path


class RecordStartCommand(BaseModel):
    """Command to start live recording."""

    command: Literal["record_start"] = "record_start"


class RecordStopCommand(BaseModel):
    """Command to stop live recording and submit the result."""

    command: Literal["record_stop"] = "record_stop"


class StatusCommand(BaseModel):
    """Command to get daemon status."""

    command: Literal["status"] = "status"


class CopyCommand(BaseModel):
    """Command to copy a panel to the clipboard."""

    command: Literal["copy"] = "copy"
    panel: PanelName


class ExportCommand(BaseModel):
    """Command to export the displayed notes."""

    command: Literal["export"] = "export"


class ShutdownCommand(BaseModel):
    """Command to shut down the daemon."""

    command: Literal["shutdown"] = "shutdown"


class SubscribeCommand(BaseModel):
    """Command to subscribe to state change events."""

    command: Literal["subscribe"] = "subscribe"


# Use discriminated union for command parsing
DaemonCommand = Annotated[
    Union[
        UploadCommand,
        RecordStartCommand,
        RecordStopCommand,
        StatusCommand,
        CopyCommand,
        ExportCommand,
        ShutdownCommand,
        SubscribeCommand,
    ],
    Field(discriminator="command"),
]


# Wrapper for easy command parsing using RootModel
class CommandWrapper(RootModel[DaemonCommand]):
    """Wrapper model for parsing incoming commands."""

    root: DaemonCommand


class PipelineStatusModel(BaseModel):
    """Model representing the pipeline and capture status."""

    state: str
    capture_state: str
    recording_seconds: int = 0
    recording_time: str = "00:00"
    transcription: PanelView
    summary: PanelView
    export_enabled: bool = False
    is_processing: bool = False
    last_error: Optional[str] = None


class AckResponse(BaseModel):
    """Simple acknowledgment response."""

    response_type: Literal["ack"] = "ack"


class StatusResponse(BaseModel):
    """Response containing daemon status."""

    response_type: Literal["status"] = "status"
    status: PipelineStatusModel


class ErrorResponse(BaseModel):
    """Response indicating an error."""

    response_type: Literal["error"] = "error"
    message: str


class ExportResponse(BaseModel):
    """Response carrying the path of exported notes."""

    response_type: Literal["export"] = "export"
    path: Path


class StateNotification(BaseModel):
    """Notification broadcast when pipeline state changes."""

    response_type: Literal["state_change"] = "state_change"
    status: PipelineStatusModel


class ToastNotification(BaseModel):
    """Transient message broadcast to subscribers."""

    response_type: Literal["notification"] = "notification"
    notification: Notification


# Use discriminated union for response serialization
DaemonResponse = Annotated[
    Union[
        AckResponse,
        StatusResponse,
        ErrorResponse,
        ExportResponse,
        StateNotification,
        ToastNotification,
    ],
    Field(discriminator="response_type"),
]


# Wrapper for easy response serialization using RootModel
class ResponseWrapper(RootModel[DaemonResponse]):
    """Wrapper model for serializing outgoing responses."""

    root: DaemonResponse

    def model_dump_json(self, **kwargs) -> str:
        """Override to unwrap the response for serialization."""
        return self.root.model_dump_json(**kwargs)

    @classmethod
    def model_validate_json(cls, json_data: str, **kwargs):
        """Override to wrap the parsed response data."""
        try:
            data = json.loads(json_data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}")

        response_type = data.get("response_type")
        if not response_type:
            raise ValueError("Missing response_type field")

        response_types = {
            "ack": AckResponse,
            "status": StatusResponse,
            "error": ErrorResponse,
            "export": ExportResponse,
            "state_change": StateNotification,
            "notification": ToastNotification,
        }

        if response_type not in response_types:
            raise ValueError(f"Invalid response_type: {response_type}")

        response = response_types[response_type].model_validate(data)
        return cls(root=response)
