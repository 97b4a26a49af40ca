"""
Streaming multipart/form-data encoder for Bot API uploads.

The body is produced by a worker thread into a BytePipe and read by the
HTTP transport from the other end, so a file of any size is sent with a
bounded amount of memory. Part order is fixed: the file part, the scalar
fields, then the thumbnail.
"""

import logging
import secrets
import threading
from typing import Callable, List, Optional, Tuple

from aiohttp.helpers import content_disposition_header

from tgupload.errors import StreamingError, ThumbnailNotFoundError, UploadError
from tgupload.lib.pipe import BytePipe
from tgupload.models import FileKind, UploadRequest
from tgupload.observability.logging import get_logger, log_error_with_code


logger = get_logger(__name__)

CRLF = b"\r\n"

# Line breaks cannot appear inside a header; browsers send them as %0D/%0A
_FILENAME_ESCAPES = str.maketrans({"\r": "%0D", "\n": "%0A"})


class StreamEncoder:
    """Encode one UploadRequest as a multipart/form-data byte stream."""

    def __init__(
        self,
        request: UploadRequest,
        kind: FileKind,
        chunk_size: int = 64 * 1024,
        boundary: Optional[str] = None,
    ) -> None:
        self.request = request
        self.kind = kind
        self.chunk_size = chunk_size
        self.boundary = boundary or secrets.token_hex(16)
        self.error: Optional[UploadError] = None
        self.bytes_written = 0
        self.cancelled = False
        self._parts = 0

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def fields(self) -> List[Tuple[str, str]]:
        """Scalar form fields in the order they are written."""
        req = self.request
        fields = [("chat_id", str(req.chat_id))]

        # Only add reply_to_message_id if it's not 0
        if req.reply_to_message_id != 0:
            fields.append(("reply_to_message_id", str(req.reply_to_message_id)))
        if req.parse_mode:
            fields.append(("parse_mode", req.parse_mode))

        if self.kind is FileKind.AUDIO:
            if req.title:
                fields.append(("title", req.title))
            if req.performer:
                fields.append(("performer", req.performer))
            if req.duration > 0:
                fields.append(("duration", str(req.duration)))
            fields.append(("supports_streaming", "true"))
        elif req.title:
            # Documents have no title; Telegram shows the caption instead
            fields.append(("caption", req.title))

        return fields

    def start(self, pipe: BytePipe) -> threading.Thread:
        """Run the producer in a daemon thread writing into pipe."""
        thread = threading.Thread(target=self.run, args=(pipe,), name="multipart-producer", daemon=True)
        thread.start()
        return thread

    def run(self, pipe: BytePipe) -> None:
        """
        Write the whole body into pipe, then close it.

        The closing boundary is written even when encoding failed; the
        failure is then delivered to the reader through close_writer.
        A reader that stopped early (the server already answered) is not
        an encoding failure and leaves error unset.
        """
        error: Optional[UploadError] = None
        try:
            self.write_body(pipe.write)
        except UploadError as e:
            error = e
        except BrokenPipeError as e:
            if not pipe.closed:
                error = StreamingError(f"failed to stream {self.request.file_path}: {e}")
        except Exception as e:
            # Forwarded to the consumer as a terminal read error
            error = StreamingError(f"failed to stream {self.request.file_path}: {e}")

        try:
            self._emit(pipe.write, self._trailer())
        except OSError as e:
            if error is None and not pipe.closed:
                error = StreamingError(f"failed to finish request body: {e}")

        # Only the reader can have closed the pipe before close_writer below
        self.cancelled = pipe.closed

        if error is not None:
            self.error = error
            log_error_with_code(
                logger=logger,
                error_type=error.error_type,
                message="Encoding request body failed",
                level=logging.WARNING,  # the CLI reports the error itself
                exception=error,
                file_kind=self.kind.value,
                details={"bytes_written": self.bytes_written},
            )
        pipe.close_writer(error)

    def write_body(self, write: Callable[[bytes], int]) -> None:
        """Write every part except the closing boundary."""
        req = self.request

        with req.file_path.open("rb") as source:
            self._emit(write, self._part_header(self.kind.field_name, req.file_path.name))
            self._copy(source, write)

        for name, value in self.fields():
            self._emit(write, self._part_header(name))
            self._emit(write, value.encode("utf-8"))

        if req.thumbnail_path is not None:
            # Checked only now: the file part may already be on the wire
            if not req.thumbnail_path.exists():
                raise ThumbnailNotFoundError(f"thumbnail file does not exist: {req.thumbnail_path}")
            with req.thumbnail_path.open("rb") as thumb:
                self._emit(write, self._part_header("thumb", req.thumbnail_path.name))
                self._copy(thumb, write)

    def _copy(self, source, write: Callable[[bytes], int]) -> None:
        while True:
            chunk = source.read(self.chunk_size)
            if not chunk:
                break
            self._emit(write, chunk)

    def _emit(self, write: Callable[[bytes], int], data: bytes) -> None:
        write(data)
        self.bytes_written += len(data)

    def _part_header(self, name: str, filename: Optional[str] = None) -> bytes:
        # Telegram reads raw UTF-8 names, so values are not percent-quoted
        if filename is None:
            disposition = content_disposition_header("form-data", quote_fields=False, name=name)
        else:
            disposition = content_disposition_header(
                "form-data",
                quote_fields=False,
                name=name,
                filename=filename.translate(_FILENAME_ESCAPES),
            )
        lines = [f"Content-Disposition: {disposition}"]
        if filename is not None:
            lines.append("Content-Type: application/octet-stream")

        # Parts after the first start on a new line
        prefix = CRLF if self._parts else b""
        self._parts += 1
        head = f"--{self.boundary}\r\n" + "\r\n".join(lines) + "\r\n\r\n"
        return prefix + head.encode("utf-8")

    def _trailer(self) -> bytes:
        prefix = CRLF if self._parts else b""
        return prefix + f"--{self.boundary}--\r\n".encode("ascii")
