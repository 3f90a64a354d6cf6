"""Configuration handling for noteforged daemon."""

import getpass
import os
import tomllib
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_RECORD_COMMAND = (
    "ffmpeg -hide_banner -loglevel error -f pulse -i default "
    "-c:a libopus -f webm -"
)


def get_default_config_path() -> Path:
    """Get the default config file path following XDG spec."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base_dir = Path(xdg_config)
    else:
        base_dir = Path.home() / ".config"

    return base_dir / "noteforge" / "config.toml"


def get_default_socket_path() -> Path:
    """Get the default socket path following XDG spec."""
    xdg_runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if xdg_runtime_dir:
        sock_dir = Path(xdg_runtime_dir) / "noteforge"
        try:
            sock_dir.mkdir(parents=True, exist_ok=True)
            if not os.access(sock_dir, os.W_OK | os.X_OK):
                raise OSError("Insufficient permissions for XDG runtime dir.")
            return sock_dir / "daemon.sock"
        except (OSError, PermissionError) as e:
            print(
                f"Warning: Could not use XDG_RUNTIME_DIR ({e}), falling back to /tmp."
            )

    # Fallback if XDG_RUNTIME_DIR not set or unusable
    uid = getpass.getuser()
    return Path(f"/tmp/noteforge-{uid}.sock")


def get_default_log_path() -> Path:
    """Get the default log file path following XDG spec."""
    xdg_state = os.environ.get("XDG_STATE_HOME")
    if xdg_state:
        base_dir = Path(xdg_state)
    else:
        base_dir = Path.home() / ".local" / "state"

    log_dir = base_dir / "noteforge"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "noteforged.log"


def get_default_export_dir() -> Path:
    """Get the default directory for exported notes."""
    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        base_dir = Path(xdg_data)
    else:
        base_dir = Path.home() / ".local" / "share"

    return base_dir / "noteforge" / "exports"


class TranscriptionConfig(BaseModel):
    """Speech-to-text provider configuration."""

    model: str = Field(
        default="whisper-1", description="Transcription model identifier."
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Provider API key (falls back to OPENAI_API_KEY).",
    )
    base_url: Optional[str] = Field(
        default=None, description="Optional custom API base URL."
    )
    language: Optional[str] = Field(
        default=None, description="Optional language code (empty for auto-detect)."
    )
    timeout_s: float = Field(
        default=300.0, gt=0, description="Request timeout in seconds."
    )

    @field_validator("model")
    @classmethod
    def check_model_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Transcription model identifier cannot be empty")
        return v


class SummarizationConfig(BaseModel):
    """Summarization provider configuration."""

    model: str = Field(
        default="gpt-4o-mini", description="Summarization model identifier."
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Provider API key (falls back to OPENAI_API_KEY).",
    )
    base_url: Optional[str] = Field(
        default=None, description="Optional custom API base URL."
    )
    style: Literal["paragraph", "bullets"] = Field(
        default="paragraph", description="Layout of the generated summary."
    )
    length: Literal["short", "medium", "detailed"] = Field(
        default="medium", description="Target length of the generated summary."
    )
    temperature: float = Field(
        default=0.3, ge=0.0, le=2.0, description="Sampling temperature."
    )
    timeout_s: float = Field(
        default=120.0, gt=0, description="Request timeout in seconds."
    )

    @field_validator("model")
    @classmethod
    def check_model_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Summarization model identifier cannot be empty")
        return v


class CaptureConfig(BaseModel):
    """Live recording configuration."""

    record_command: str = Field(
        default=DEFAULT_RECORD_COMMAND,
        description="Command that writes an encoded audio stream to stdout.",
    )
    media_type: str = Field(
        default="audio/webm", description="Media type of the recorded stream."
    )
    file_name: str = Field(
        default="recording.webm",
        description="File name reported to the provider for recordings.",
    )
    acquire_grace_s: float = Field(
        default=0.3,
        ge=0,
        description="Time the recorder must stay alive to count as acquired (0 = no check).",
    )
    stop_timeout_s: float = Field(
        default=5.0, gt=0, description="Time to wait for the recorder to exit."
    )

    @field_validator("record_command")
    @classmethod
    def check_command_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Record command cannot be empty")
        return v


class OutputConfig(BaseModel):
    """Clipboard and print command configuration."""

    clipboard_command: Optional[str] = Field(
        default=None, description="Command to execute for clipboard output."
    )
    print_command: Optional[str] = Field(
        default=None, description="Command that receives exported notes on stdin."
    )
    command_timeout_s: float = Field(
        default=5.0, gt=0, description="Maximum run time for output commands."
    )


class ExportConfig(BaseModel):
    """Notes export configuration."""

    export_dir: Optional[Path] = Field(
        default=None, description="Optional custom directory for exported notes."
    )
    title: str = Field(default="Lecture Notes", description="Document title.")

    @property
    def computed_export_dir(self) -> Path:
        return self.export_dir or get_default_export_dir()


class DaemonConfig(BaseModel):
    """Daemon runtime configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    )
    log_file: Optional[Path] = Field(
        default=None, description="Optional custom log file path."
    )
    socket_path: Optional[Path] = Field(
        default=None, description="Optional custom socket path for IPC."
    )

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in allowed_levels:
            raise ValueError(f"Invalid log level. Choose from {allowed_levels}")
        return upper_v

    @property
    def computed_log_file(self) -> Path:
        return self.log_file or get_default_log_path()

    @property
    def computed_socket_path(self) -> Path:
        return self.socket_path or get_default_socket_path()


class AppConfig(BaseModel):
    """Root configuration."""

    transcription: TranscriptionConfig = Field(default_factory=TranscriptionConfig)
    summarization: SummarizationConfig = Field(default_factory=SummarizationConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration.

    If path is not provided, looks for config in standard locations.
    If no config file is found, returns default configuration.

    Args:
        path: Optional path to config file.

    Returns:
        Validated AppConfig instance.

    Raises:
        ValueError: If config file exists but has invalid format/content.
        OSError: If config file exists but can't be read.
    """
    if path is None:
        path = get_default_config_path()

    if not path.exists():
        return AppConfig()  # Use defaults

    try:
        with open(path, "rb") as f:
            config_data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Error decoding TOML file: {path}\n{e}") from e
    except OSError as e:
        raise OSError(f"Error reading file: {path}\n{e}") from e

    try:
        return AppConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")
