"""
File classification by extension.

Archives go out as documents; everything else is sent as audio. This is
the only place that decides, so the policy can change without touching
the transport code.
"""

from pathlib import Path
from typing import Union

from tgupload.models import FileKind


DOCUMENT_EXTENSIONS = frozenset({".zip", ".rar", ".7z"})


def file_extension(path: Union[str, Path]) -> str:
    """Lower-cased text from the last dot of the base name, or ""."""
    # Unlike Path.suffix, a bare ".7z" counts as an extension
    name = Path(path).name
    dot = name.rfind(".")
    return name[dot:].lower() if dot >= 0 else ""


def classify_file(path: Union[str, Path]) -> FileKind:
    """
    Classify a file by its lower-cased extension.

    Args:
        path: File path; only the name is inspected, the file is not opened

    Returns:
        FileKind.DOCUMENT for .zip/.rar/.7z, FileKind.AUDIO otherwise
    """
    if file_extension(path) in DOCUMENT_EXTENSIONS:
        return FileKind.DOCUMENT
    return FileKind.AUDIO
