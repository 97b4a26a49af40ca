"""Streaming Telegram Bot API file uploader."""

__version__ = "1.0.0"
