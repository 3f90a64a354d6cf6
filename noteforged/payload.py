"""Audio payload passed from capture to transcription."""

import mimetypes
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MEDIA_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class AudioPayload:
    """Encoded audio blob plus its media type.

    One payload is created per capture action and never modified afterwards.
    """

    data: bytes
    media_type: str
    name: str = "recording"

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_file(cls, path: Path) -> "AudioPayload":
        """Read a user-selected file fully into a payload.

        Raises:
            OSError: If the file can't be read.
            ValueError: If the file is empty.
        """
        path = Path(path)
        data = path.read_bytes()
        if not data:
            raise ValueError(f"File is empty: {path}")

        media_type, _ = mimetypes.guess_type(path.name)
        return cls(data=data, media_type=media_type or DEFAULT_MEDIA_TYPE, name=path.name)
