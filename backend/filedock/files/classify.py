"""MIME detection and MIME -> FileType classification."""

import mimetypes
from pathlib import Path
from typing import Callable, List, Tuple, Union

from filedock.files.models import FileType

DEFAULT_MIME_TYPE = "application/octet-stream"

TEXT_MIME_TYPES = frozenset({
    "application/json",
    "application/javascript",
    "application/typescript",
    "application/x-httpd-php",
    "application/xml",
    "application/x-yaml",
    "application/x-sql",
})

DOCUMENT_MIME_TYPES = frozenset({
    "application/msword",  # .doc
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",  # .docx
    "application/vnd.ms-excel",  # .xls
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",  # .xlsx
    "application/vnd.ms-powerpoint",  # .ppt
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",  # .pptx
    "application/vnd.oasis.opendocument.text",  # .odt
    "application/vnd.oasis.opendocument.spreadsheet",  # .ods
    "application/vnd.oasis.opendocument.presentation",  # .odp
    "application/rtf",  # .rtf
})

# Video types without the video/ prefix
VIDEO_MIME_TYPES = frozenset({"application/mp4"})

# Some MIME tables report .mp4 as application/mp4
_MIME_CORRECTIONS = {"application/mp4": "video/mp4"}


def _prefix(prefix: str) -> Callable[[str], bool]:
    return lambda mime: mime.startswith(prefix)


def _one_of(values: frozenset) -> Callable[[str], bool]:
    return lambda mime: mime in values


# Evaluated top to bottom; first match wins.
FILE_TYPE_RULES: List[Tuple[Callable[[str], bool], FileType]] = [
    (_prefix("image/"), FileType.IMAGE),
    (_prefix("video/"), FileType.VIDEO),
    (_prefix("audio/"), FileType.AUDIO),
    (_prefix("text/"), FileType.TEXT),
    (_one_of(TEXT_MIME_TYPES), FileType.TEXT),
    (_one_of(frozenset({"application/pdf"})), FileType.PDF),
    (_one_of(DOCUMENT_MIME_TYPES), FileType.DOCUMENT),
    (_one_of(VIDEO_MIME_TYPES), FileType.VIDEO),
]


def get_file_type(mime_type: str) -> FileType:
    """Classify a MIME type. Unknown or empty MIME types are OTHER."""
    if not mime_type:
        return FileType.OTHER
    normalized = mime_type.strip().lower()
    for matches, file_type in FILE_TYPE_RULES:
        if matches(normalized):
            return file_type
    return FileType.OTHER


def detect_mime_type(path: Union[str, Path]) -> str:
    """Guess the MIME type from the file name; octet-stream when unknown."""
    mime, _ = mimetypes.guess_type(Path(path).name)
    mime = mime or DEFAULT_MIME_TYPE
    return _MIME_CORRECTIONS.get(mime, mime)
