"""
Structured JSON logging for tg-uploader.

Log records go to stderr: stdout is reserved for the message id printed
by the CLI, so callers can capture it with `$(...)`.

JSON LOG SCHEMA:
{
    "timestamp": "2025-01-15 14:30:45,123",  // logging.Formatter.formatTime
    "level": "INFO|ERROR|WARNING|DEBUG",
    "logger": "tgupload.services.uploader",
    "message": "Human readable message",
    "event": "upload_started|upload_completed|...",
    "file_kind": "audio|document",            // Optional
    "message_id": 12345,                      // Optional: Telegram message ID
    "chat_id": -1001234567890,                // Optional: destination chat
    "status": "success|error|rejected",       // Optional
    "size": 1024,                             // Optional: bytes
    "details": {...}                          // Optional
}

EVENT TYPES (stable):
- Upload: upload_started, upload_completed, upload_rejected
- Rate gate: rate_gate_waited, state_committed, state_commit_failed
- Startup: config_loaded (DEBUG, redacted config summary)
- Failures: logged by log_error_with_code under their error type
  (thumbnail_not_found, streaming_failed, network_timeout, ...)

PRIVACY:
- NEVER include the bot token (it is part of the request URL)
- File names, sizes and numeric ids only
"""

import json
import logging
import sys
from typing import Any, Dict, Optional


_STRUCTURED_FIELDS = ("event", "file_kind", "message_id", "chat_id", "status", "size")

# Level applied to loggers handed out by get_logger (see set_log_level)
_level = logging.ERROR


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with required fields."""
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage()
        }

        for field in _STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)
        if hasattr(record, "details") and record.details:
            log_data["details"] = record.details

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with JSON formatting on stderr."""
    logger = logging.getLogger(name)

    # Only add handler if none exists (avoid duplicates)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.setLevel(_level)
        logger.propagate = False

    return logger


def set_log_level(level: str) -> None:
    """Apply LOG_LEVEL to every tgupload logger, existing and future."""
    global _level
    numeric = logging.getLevelName(level.upper())
    _level = numeric
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if name.startswith("tgupload") and isinstance(candidate, logging.Logger):
            candidate.setLevel(numeric)


def log_event(
    logger: logging.Logger,
    event: str,
    level: int = logging.INFO,
    message: str = "",
    *,
    file_kind: Optional[str] = None,
    message_id: Optional[int] = None,
    chat_id: Optional[int] = None,
    status: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    size: Optional[int] = None,
) -> None:
    """
    Log a structured event with consistent fields.

    NEVER pass the bot token or a request URL to this function.
    """
    extra = {
        "event": event,
        "file_kind": file_kind,
        "message_id": message_id,
        "chat_id": chat_id,
        "status": status,
        "details": details,
        "size": size,
    }

    # Remove None values
    extra = {k: v for k, v in extra.items() if v is not None}

    logger.log(level, message, extra=extra)


# Error code mappings, keyed by UploadError.error_type
ERROR_CODES = {
    # Input files
    "source_file_not_found": "E101",
    "thumbnail_not_found": "E102",

    # Rate gate state
    "rate_state_unreadable": "E201",
    "rate_state_write_failed": "E202",

    # Transport / Telegram
    "streaming_failed": "E301",
    "network_timeout": "E302",
    "malformed_response": "E303",
    "telegram_api_error": "E304",

    # Command line / configuration
    "invalid_argument": "E401",
    "invalid_config": "E402",
}


def get_error_code(error_type: str) -> str:
    """Get standardized error code for error type."""
    return ERROR_CODES.get(error_type, "E999")  # E999 = unknown error


def log_error_with_code(
    logger: logging.Logger,
    error_type: str,
    message: str,
    *,
    level: int = logging.ERROR,
    exception: Optional[Exception] = None,
    chat_id: Optional[int] = None,
    file_kind: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log an error with standardized error code.

    Args:
        logger: Logger instance
        error_type: Type of error (key in ERROR_CODES)
        message: Human-readable error message
        level: Log level; the uploader uses WARNING because the CLI owns
            the user-facing error line
        exception: Optional exception that caused the error
        chat_id: Optional chat ID for context
        file_kind: Optional file classification for context
        details: Optional additional details (no credentials)
    """
    error_code = get_error_code(error_type)

    error_details = {"error_code": error_code}
    if exception:
        error_details["exception_type"] = type(exception).__name__
        error_details["exception_message"] = str(exception)
    if details:
        error_details.update(details)

    log_event(
        logger=logger,
        event=error_type,
        level=level,
        message=f"[{error_code}] {message}",
        chat_id=chat_id,
        file_kind=file_kind,
        status="error",
        details=error_details
    )
