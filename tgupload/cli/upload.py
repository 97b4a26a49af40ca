"""
Command line entry point.

    uploader <bot_token> <chat_id> <file_path> <title> <performer> <duration>
             <reply_to_message_id> [thumbnail_path] [parse_mode] [delay_seconds]

Prints the new message id on stdout and exits 0, or prints one error line
on stderr and exits 1.
"""

import logging
import sys
from typing import List, Optional

import click

from tgupload.config import get_config
from tgupload.errors import StateWriteError, UploadError
from tgupload.models import UploadRequest
from tgupload.observability.logging import get_error_code, get_logger, log_event, set_log_level
from tgupload.services.uploader import upload_file


logger = get_logger(__name__)

INT64 = click.IntRange(-(2 ** 63), 2 ** 63 - 1)


# Everything is positional: channel ids such as -1001234567890 must not be
# taken for options, so unknown "options" are kept as arguments. run() also
# puts "--" in front of argv so a literal "--" title stays in its slot.
@click.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
    add_help_option=False,
)
@click.argument("bot_token")
@click.argument("chat_id", type=INT64)
@click.argument("file_path")
@click.argument("title")
@click.argument("performer")
@click.argument("duration", type=int)
@click.argument("reply_to_message_id", type=int)
@click.argument("thumbnail_path", required=False, default="")
@click.argument("parse_mode", required=False, default="")
@click.argument("delay_seconds", required=False, default=0, type=int)
def upload(
    bot_token,
    chat_id,
    file_path,
    title,
    performer,
    duration,
    reply_to_message_id,
    thumbnail_path,
    parse_mode,
    delay_seconds,
):
    """Upload one file to a Telegram chat and print the message id."""
    try:
        config = get_config()
    except ValueError as e:
        click.echo(f"Invalid configuration: [{get_error_code('invalid_config')}] {e}", err=True)
        return 1
    set_log_level(config.log_level)
    log_event(
        logger=logger,
        event="config_loaded",
        level=logging.DEBUG,
        message="Configuration loaded",
        details=config.get_redacted_summary(),
    )

    request = UploadRequest(
        bot_token=bot_token,
        chat_id=chat_id,
        file_path=file_path,
        title=title,
        performer=performer,
        duration=duration,
        reply_to_message_id=reply_to_message_id,
        thumbnail_path=thumbnail_path,
        parse_mode=parse_mode,
        delay_seconds=delay_seconds,
    )

    try:
        result = upload_file(request, config)
    except StateWriteError as e:
        # Delivered, but the next run will not wait for this upload
        log_event(
            logger=logger,
            event="state_commit_failed",
            level=logging.WARNING,
            message=str(e),
            message_id=e.result.message_id if e.result else None,
            chat_id=chat_id,
            status="error",
        )
        click.echo(f"Error uploading file: [{e.error_code}] {e}", err=True)
        return 1
    except UploadError as e:
        click.echo(f"Error uploading file: [{e.error_code}] {e}", err=True)
        return 1

    # The message id is the only thing written to stdout
    click.echo(result.message_id)
    return 0


def run(argv: Optional[List[str]] = None) -> int:
    """Run the CLI and return the process exit code."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        return upload.main(args=["--", *args], prog_name="uploader", standalone_mode=False)
    except click.UsageError as e:
        # Missing arguments, non-integer numbers, extra arguments
        if e.ctx is not None:
            click.echo(e.ctx.get_usage(), err=True)
        click.echo(f"Error: [{get_error_code('invalid_argument')}] {e.format_message()}", err=True)
        return 1
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1


def main() -> None:
    sys.exit(run())
