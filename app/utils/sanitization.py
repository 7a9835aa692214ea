"""Identifier and filename checks for user-supplied section ids and clip names."""

import re
from pathlib import PurePosixPath

from app.core.errors import ValidationError

MAX_FILENAME_LENGTH = 200
MAX_SECTION_ID_LENGTH = 64

# Letters, digits, underscore and hyphen only; never a path separator or "..".
SECTION_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]*$")
VOICE_FILENAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]*\.webm$")


def is_valid_section_id(section_id: object) -> bool:
    return (
        isinstance(section_id, str)
        and len(section_id) <= MAX_SECTION_ID_LENGTH
        and bool(SECTION_ID_PATTERN.match(section_id))
    )


def validate_voice_filename(file_name: str | None) -> str:
    """Return ``file_name`` if it names a clip inside the voice directory.

    Raises ValidationError for missing names, directory components,
    traversal attempts, overlong names and anything not ending in .webm.
    """
    if not file_name or not file_name.strip():
        raise ValidationError("No file name provided")

    if (
        len(file_name) > MAX_FILENAME_LENGTH
        or PurePosixPath(file_name).name != file_name
        or "\\" in file_name
        or not VOICE_FILENAME_PATTERN.match(file_name)
    ):
        raise ValidationError("Invalid or missing filename", context={"file_name": file_name[:MAX_FILENAME_LENGTH]})

    return file_name
