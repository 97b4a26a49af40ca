"""
Upload client for the Telegram Bot API.

Orchestrates one upload: rate gate, input checks, classification, a
streamed multipart POST through aiohttp, envelope parsing and the rate
state commit. Nothing is retried; every failure is an UploadError.
"""

import asyncio
import json
import logging
from typing import Optional, Tuple

import aiohttp

from tgupload.config import DEFAULT_API_BASE, Config, get_config
from tgupload.errors import (
    MalformedResponseError,
    RemoteRejectedError,
    SourceFileNotFoundError,
    StateWriteError,
    StreamingError,
    UploadError,
    UploadTimeoutError,
)
from tgupload.lib.classify import classify_file
from tgupload.lib.pipe import BytePipe
from tgupload.lib.rate_gate import RateGate
from tgupload.models import FileKind, UploadRequest, UploadResult
from tgupload.observability.logging import get_logger, log_error_with_code, log_event
from tgupload.services.encoder import StreamEncoder


logger = get_logger(__name__)


def parse_envelope(status: int, body: bytes, kind: FileKind) -> UploadResult:
    """
    Parse a Bot API response envelope.

    Telegram answers errors with a non-200 status and the same envelope,
    so the status only shows up in error messages.

    Raises:
        RemoteRejectedError: If ok is false
        MalformedResponseError: If the body is not a usable envelope
    """
    try:
        envelope = json.loads(body)
    except ValueError:
        snippet = body[:200].decode("utf-8", "replace")
        raise MalformedResponseError(f"failed to decode response (HTTP {status}): {snippet!r}", status)

    if not isinstance(envelope, dict) or not isinstance(envelope.get("ok"), bool):
        raise MalformedResponseError(f"unexpected response shape (HTTP {status})", status)

    if not envelope["ok"]:
        parameters = envelope.get("parameters")
        retry_after = parameters.get("retry_after") if isinstance(parameters, dict) else None
        raise RemoteRejectedError(
            str(envelope.get("description") or f"request rejected (HTTP {status})"),
            error_code=envelope.get("error_code"),
            retry_after=retry_after,
        )

    result = envelope.get("result")
    message_id = result.get("message_id") if isinstance(result, dict) else None
    if type(message_id) is not int or message_id <= 0:
        raise MalformedResponseError(f"response has no message_id (HTTP {status})", status)

    media = result.get(kind.value)
    file_id = media.get("file_id") if isinstance(media, dict) else None
    return UploadResult(message_id=message_id, kind=kind, file_id=file_id)


class UploadClient:
    """Send one file per call to a Telegram chat."""

    def __init__(
        self,
        rate_gate: RateGate,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 600.0,
        chunk_size: int = 64 * 1024,
        buffer_size: int = 1024 * 1024,
    ) -> None:
        self.rate_gate = rate_gate
        self.api_base = api_base
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.buffer_size = buffer_size

    @classmethod
    def from_config(cls, config: Config) -> "UploadClient":
        return cls(
            RateGate(config.state_file),
            api_base=config.api_base,
            timeout=config.timeout_seconds,
            chunk_size=config.chunk_size,
            buffer_size=config.buffer_size,
        )

    def upload(self, request: UploadRequest) -> UploadResult:
        """
        Upload request.file_path and return the new message.

        Blocks for the rate gate, then for the whole transfer.

        Raises:
            UploadError: Any subclass; the state file is only updated
                after Telegram confirmed the upload
        """
        self.rate_gate.wait(request.delay_seconds)

        path = request.file_path
        if not path.is_file():
            raise SourceFileNotFoundError(f"input file does not exist: {path}")

        kind = classify_file(path)
        encoder = StreamEncoder(request, kind, chunk_size=self.chunk_size)
        log_event(
            logger=logger,
            event="upload_started",
            message=f"Uploading {path.name}",
            file_kind=kind.value,
            chat_id=request.chat_id,
            size=path.stat().st_size,
        )

        pipe = BytePipe(self.buffer_size)
        producer = encoder.start(pipe)
        try:
            status, body = asyncio.run(self._post(request, kind, encoder, pipe))
        except UploadError as e:
            log_error_with_code(
                logger=logger,
                error_type=e.error_type,
                message=f"Upload of {path.name} failed",
                level=logging.WARNING,
                exception=e,
                chat_id=request.chat_id,
                file_kind=kind.value,
            )
            raise
        finally:
            pipe.close_reader()
            producer.join()

        # A real producer failure outranks any reply; a reply that merely
        # arrived before the body was finished (encoder.cancelled) is parsed
        if encoder.error is not None:
            raise encoder.error

        try:
            result = parse_envelope(status, body, kind)
        except RemoteRejectedError as e:
            log_event(
                logger=logger,
                event="upload_rejected",
                level=logging.WARNING,
                message=f"Telegram rejected {path.name}: {e.description}",
                file_kind=kind.value,
                chat_id=request.chat_id,
                status="rejected",
                details={"http_status": status, "error_code": e.telegram_error_code},
            )
            raise

        try:
            self.rate_gate.commit()
        except StateWriteError as e:
            raise StateWriteError(f"{e} (message {result.message_id} was delivered)", result=result)

        log_event(
            logger=logger,
            event="upload_completed",
            message=f"Uploaded {path.name}",
            file_kind=kind.value,
            chat_id=request.chat_id,
            message_id=result.message_id,
            status="success",
            size=encoder.bytes_written,
        )
        return result

    async def _post(
        self,
        request: UploadRequest,
        kind: FileKind,
        encoder: StreamEncoder,
        pipe: BytePipe,
    ) -> Tuple[int, bytes]:
        """POST the streamed body; returns (HTTP status, raw body)."""
        url = f"{self.api_base}{request.bot_token}/{kind.method}"
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {"Content-Type": encoder.content_type}

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, data=self._body(pipe), headers=headers) as resp:
                    return resp.status, await resp.read()
        except asyncio.TimeoutError as e:
            if encoder.error is not None:
                raise encoder.error from e
            raise UploadTimeoutError(
                f"upload of {request.file_path} did not finish within {self.timeout:g}s"
            ) from e
        except aiohttp.ClientError as e:
            # The producer's failure explains a broken request body better
            if encoder.error is not None:
                raise encoder.error from e
            raise StreamingError(
                f"failed to send request: {_redact(str(e), request.bot_token)}"
            ) from e
        finally:
            # Wake a body read still parked in the executor before the loop shuts down
            pipe.close_reader()

    async def _body(self, pipe: BytePipe):
        """Yield request body chunks read from pipe without blocking the loop."""
        loop = asyncio.get_running_loop()
        while True:
            chunk = await loop.run_in_executor(None, pipe.read, self.chunk_size)
            if not chunk:
                break
            yield chunk


def _redact(text: str, token: str) -> str:
    """Remove the bot token from text (aiohttp errors may quote the URL)."""
    return text.replace(token, "<token>") if token else text


def upload_file(request: UploadRequest, config: Optional[Config] = None) -> UploadResult:
    """Upload with a client built from the environment configuration."""
    return UploadClient.from_config(config or get_config()).upload(request)
