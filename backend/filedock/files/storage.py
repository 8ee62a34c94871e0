"""Filesystem side of the catalog: safe path resolution and directory walking."""

import logging
import re
import stat
import unicodedata
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from filedock.files.errors import FilesystemReadError

if TYPE_CHECKING:
    from filedock.files.store import FileStore

log = logging.getLogger(__name__)

# Safe path segment: letters, numbers, common punctuation. No / \ (traversal).
# Allow: . _ - space ( ) + ~ # ! & ' , ; = [ ] @ for "File (1).txt", "user@host.txt", etc.
_SAFE_SEGMENT_ASCII = re.compile(r"^[a-zA-Z0-9_. \-()+~#!&',;=\[\]@]+$")


def _is_safe_path_char(c: str) -> bool:
    """True if char is allowed in a path segment (no traversal, no control chars)."""
    if len(c) != 1:
        return False
    if c in "/\\%":
        return False  # % can be used in encoding/URLs; keep path segments safe
    if ord(c) < 32:
        return False
    if ("a" <= c <= "z") or ("A" <= c <= "Z") or ("0" <= c <= "9") or c in "_. -()+~#!&',;=[]@":
        return True
    cat = unicodedata.category(c)
    # Letter, Number, or Punctuation (e.g. fullwidth parentheses （） in "Manual（CN）.pdf")
    return cat.startswith("L") or cat.startswith("N") or cat.startswith("P")


def sanitize_segment(segment: str) -> Optional[str]:
    """Return segment if safe, else None. Rejects empty, '..', '.', and invalid chars.
    Allows Unicode letters and numbers (e.g. ä, ö, ü, é) for international filenames.
    """
    segment = segment.strip()
    if not segment or segment in (".", ".."):
        return None
    if _SAFE_SEGMENT_ASCII.match(segment):
        return segment
    if not all(_is_safe_path_char(c) for c in segment):
        return None
    return segment


def resolve_storage_path(relative_path: str, root: Path) -> Path:
    """
    Resolve a relative path under root. Rejects traversal and unsafe names.
    relative_path uses forward slashes; segments are sanitized.
    """
    resolved = root
    parts = relative_path.replace("\\", "/").strip("/").split("/")
    for part in parts:
        if not part:
            continue
        safe = sanitize_segment(part)
        if not safe:
            raise ValueError(f"Unsafe path segment: {part!r}")
        resolved = resolved / safe
    return resolved


def relative_path(root: Path, path: Path) -> str:
    """Path of `path` relative to `root`, forward-slash normalized."""
    return path.relative_to(root).as_posix()


def walk_files(root: Path) -> List[Path]:
    """
    Return every regular file under root, depth-first, sorted by name
    within each directory. Symlinks are not followed and are skipped along
    with sockets, fifos and devices. Any listing failure raises
    FilesystemReadError.
    """
    files: List[Path] = []
    try:
        entries = sorted(root.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise FilesystemReadError(f"Cannot list {root}: {e}") from e
    for entry in entries:
        try:
            mode = entry.lstat().st_mode
        except OSError as e:
            raise FilesystemReadError(f"Cannot stat {entry}: {e}") from e
        if stat.S_ISDIR(mode):
            files.extend(walk_files(entry))
        elif stat.S_ISREG(mode):
            files.append(entry)
        else:
            log.debug("Skipping non-regular entry %s", entry)
    return files


def file_size(path: Path) -> int:
    """Size in bytes; raises FilesystemReadError if the file cannot be statted."""
    try:
        return path.stat().st_size
    except OSError as e:
        raise FilesystemReadError(f"Cannot stat {path}: {e}") from e


def file_exists(path: Path) -> bool:
    """True if path exists. Errors while checking count as absent."""
    try:
        return path.exists()
    except (OSError, ValueError):
        return False


def remove_file(path: Path) -> None:
    """
    Delete a single file. Raises FileNotFoundError if it does not exist and
    ValueError if it is not a regular file. Parent directories are left alone.
    """
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise ValueError(f"Not a file: {path}")
    path.unlink()


async def folder_directory(store: "FileStore", folder_id: Optional[str], root: Path) -> Path:
    """
    On-disk directory for a folder entry: root joined with the names of the
    folder and its ancestors. None is the root itself.
    """
    names: List[str] = []
    seen = set()
    current_id = folder_id
    while current_id is not None:
        if current_id in seen:
            raise ValueError(f"Folder cycle at {current_id}")
        seen.add(current_id)
        folder = await store.get(current_id)
        if folder is None or not folder.is_folder:
            raise ValueError(f"Not a folder: {current_id}")
        safe = sanitize_segment(folder.name)
        if not safe:
            raise ValueError(f"Unsafe folder name: {folder.name!r}")
        names.append(safe)
        current_id = folder.parent_id
    directory = root
    for name in reversed(names):
        directory = directory / name
    return directory


def catalog_file_path(root: Path, path: str) -> Path:
    """
    Disk location for a catalog path. Catalog paths come from the reconciler
    as well as uploads, so only traversal is rejected, not unusual characters.
    """
    parts = [p for p in path.replace("\\", "/").split("/") if p]
    if not parts or any(p in (".", "..") for p in parts):
        raise ValueError(f"Invalid catalog path: {path!r}")
    return root.joinpath(*parts)
