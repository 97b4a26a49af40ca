#!/usr/bin/env python3
"""
tg-uploader - upload one audio file or archive to a Telegram chat.

Usage:
    python main.py <bot_token> <chat_id> <file_path> <title> <performer> <duration> \\
        <reply_to_message_id> [thumbnail_path] [parse_mode] [delay_seconds]

Prints the message id on success. Archives (.zip, .rar, .7z) are sent as
documents with the title as caption, everything else as audio.

Optional environment variables:
    TG_API_BASE - Bot API base URL (default: https://api.telegram.org/bot)
    UPLOAD_STATE_FILE - Where the last upload time is kept
        (default: ~/.local/state/tg-uploader/last_upload.txt)
    UPLOAD_TIMEOUT_SECONDS - Client timeout for the whole request (default: 600)
    UPLOAD_CHUNK_BYTES - Read size for file content (default: 64KB)
    UPLOAD_BUFFER_BYTES - In-memory body buffer (default: 1MB)
    LOG_LEVEL - Logging level for JSON logs on stderr (default: ERROR)
"""

import sys
from pathlib import Path

# Allow running from a checkout without installing
sys.path.insert(0, str(Path(__file__).parent))

from tgupload.cli.upload import run


if __name__ == "__main__":
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        print("Upload interrupted by user.", file=sys.stderr)
        sys.exit(1)
