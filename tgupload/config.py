"""
Configuration management for tg-uploader.

Loads and validates environment variables with safe defaults. Everything
that identifies a single upload (token, chat, file) comes from the command
line; the environment only tunes the transport and the rate gate.

Optional vars: TG_API_BASE, UPLOAD_STATE_FILE, UPLOAD_TIMEOUT_SECONDS,
UPLOAD_CHUNK_BYTES, UPLOAD_BUFFER_BYTES, LOG_LEVEL
"""

import os
from pathlib import Path
from dotenv import find_dotenv, load_dotenv


DEFAULT_API_BASE = "https://api.telegram.org/bot"
DEFAULT_STATE_FILE = "~/.local/state/tg-uploader/last_upload.txt"


class Config:
    """Configuration container with validation."""

    def __init__(self) -> None:
        # Load .env from the working directory if it exists
        load_dotenv(find_dotenv(usecwd=True))

        self.api_base = os.getenv("TG_API_BASE", DEFAULT_API_BASE)
        self.state_file = Path(os.getenv("UPLOAD_STATE_FILE", DEFAULT_STATE_FILE)).expanduser()
        self.timeout_seconds = self._get_number("UPLOAD_TIMEOUT_SECONDS", "600", float)
        self.chunk_size = self._get_number("UPLOAD_CHUNK_BYTES", "65536", int)
        self.buffer_size = self._get_number("UPLOAD_BUFFER_BYTES", "1048576", int)
        self.log_level = os.getenv("LOG_LEVEL", "ERROR").upper()

        # Validation
        self._validate()

    def _get_number(self, key: str, default: str, kind: type):
        """Get a numeric environment variable."""
        value = os.getenv(key, default)
        try:
            return kind(value)
        except ValueError:
            raise ValueError(f"Invalid {key}: {value!r}")

    def _validate(self) -> None:
        """Validate configuration values."""
        if not self.api_base.startswith(("http://", "https://")):
            raise ValueError("TG_API_BASE must be an http(s) URL")

        if self.timeout_seconds <= 0:
            raise ValueError("UPLOAD_TIMEOUT_SECONDS must be positive")

        if self.chunk_size < 1024:  # At least 1KB
            raise ValueError("UPLOAD_CHUNK_BYTES must be at least 1024 bytes")

        if self.buffer_size < self.chunk_size:
            raise ValueError("UPLOAD_BUFFER_BYTES must be at least UPLOAD_CHUNK_BYTES")

        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid LOG_LEVEL: {self.log_level}")

    def get_redacted_summary(self) -> dict:
        """Get configuration summary safe for logging."""
        return {
            "api_base": self.api_base,
            "state_file": str(self.state_file),
            "timeout_seconds": self.timeout_seconds,
            "chunk_size": self.chunk_size,
            "buffer_size": self.buffer_size,
            "log_level": self.log_level,
        }


# Global config instance, created on first use
# Tests should create their own Config instances or use mocks
config = None

def get_config() -> Config:
    """Get global config instance, creating it if needed."""
    global config
    if config is None:
        config = Config()
    return config
