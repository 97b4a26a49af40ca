"""
Error taxonomy for tg-uploader.

Every failure of an upload attempt is terminal and surfaces as an
UploadError subclass. `error_type` keys into ERROR_CODES in
tgupload.observability.logging.
"""

from typing import Optional

from tgupload.observability.logging import get_error_code


class UploadError(Exception):
    """Base exception for upload operations."""

    error_type = "upload_failed"

    @property
    def error_code(self) -> str:
        return get_error_code(self.error_type)


class SourceFileNotFoundError(UploadError):
    """The file to upload is missing or not a regular file."""

    error_type = "source_file_not_found"


class ThumbnailNotFoundError(UploadError):
    """The thumbnail path was given but does not exist."""

    error_type = "thumbnail_not_found"


class RateStateReadError(UploadError):
    """The rate state file exists but cannot be read or parsed."""

    error_type = "rate_state_unreadable"


class StateWriteError(UploadError):
    """Recording the last upload time failed.

    Raised after Telegram already accepted the file, so `result` carries
    the delivered message.
    """

    error_type = "rate_state_write_failed"

    def __init__(self, message: str, result=None) -> None:
        super().__init__(message)
        self.result = result


class StreamingError(UploadError):
    """Reading, encoding or transmitting the request body failed."""

    error_type = "streaming_failed"


class UploadTimeoutError(UploadError):
    """The request did not complete within the client timeout."""

    error_type = "network_timeout"


class MalformedResponseError(UploadError):
    """The response body is not a Bot API envelope."""

    error_type = "malformed_response"

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class RemoteRejectedError(UploadError):
    """Telegram answered with ok=false."""

    error_type = "telegram_api_error"

    def __init__(
        self,
        description: str,
        error_code: Optional[int] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(description)
        self.description = description
        self.telegram_error_code = error_code
        self.retry_after = retry_after
