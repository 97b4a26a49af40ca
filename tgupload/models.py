"""Value objects passed between the CLI, the encoder and the uploader."""

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class FileKind(enum.Enum):
    """How Telegram receives the file: as playable audio or as a document."""

    AUDIO = "audio"
    DOCUMENT = "document"

    @property
    def method(self) -> str:
        """Bot API method used to send this kind of file."""
        return "sendAudio" if self is FileKind.AUDIO else "sendDocument"

    @property
    def field_name(self) -> str:
        """Multipart field carrying the file content."""
        return self.value


@dataclass(frozen=True)
class UploadRequest:
    """Everything needed for one upload.

    Zero or empty values mean "not set": duration <= 0, reply_to_message_id
    of 0 and an empty thumbnail_path or parse_mode are left out of the
    request. delay_seconds <= 0 disables the rate gate.
    """

    bot_token: str
    chat_id: int
    file_path: Path
    title: str = ""
    performer: str = ""
    duration: int = 0
    reply_to_message_id: int = 0
    thumbnail_path: Optional[Path] = None
    parse_mode: str = ""
    delay_seconds: int = 0

    def __post_init__(self) -> None:
        # Accept plain strings from callers; the CLI passes "" for no thumbnail
        object.__setattr__(self, "file_path", Path(self.file_path))
        if self.thumbnail_path in ("", None):
            object.__setattr__(self, "thumbnail_path", None)
        else:
            object.__setattr__(self, "thumbnail_path", Path(self.thumbnail_path))

    def __repr__(self) -> str:
        return (
            f"UploadRequest(chat_id={self.chat_id}, file_path={str(self.file_path)!r}, "
            f"thumbnail_path={self.thumbnail_path}, delay_seconds={self.delay_seconds})"
        )


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a successful upload."""

    message_id: int
    kind: FileKind
    file_id: Optional[str] = None
