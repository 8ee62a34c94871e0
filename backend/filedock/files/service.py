"""File service: catalog operations that also touch the storage root."""

import logging
import time
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote

from filedock.files.classify import detect_mime_type, get_file_type
from filedock.files.errors import StoreError
from filedock.files.models import FOLDER_MIME_TYPE, FileEntry, FileType
from filedock.files.storage import (
    catalog_file_path,
    file_exists,
    folder_directory,
    relative_path,
    remove_file,
    resolve_storage_path,
    sanitize_segment,
)
from filedock.files.store import FileStore

log = logging.getLogger(__name__)


class FileService:
    """Catalog operations bound to a store and a storage root."""

    def __init__(self, store: FileStore, root: Path) -> None:
        self.store = store
        self.root = root

    async def _require(self, entry_id: str) -> FileEntry:
        entry = await self.store.get(entry_id)
        if entry is None:
            raise FileNotFoundError(f"File not found: {entry_id}")
        return entry

    async def _require_text_file(self, entry_id: str) -> FileEntry:
        entry = await self._require(entry_id)
        if entry.is_folder:
            raise ValueError("Cannot access content of a folder")
        if entry.type != FileType.TEXT:
            raise ValueError("Only text files support content access")
        return entry

    async def _require_folder_or_root(self, parent_id: Optional[str]) -> None:
        if parent_id is None:
            return
        parent = await self.store.get(parent_id)
        if parent is None or not parent.is_folder:
            raise ValueError(f"Invalid destination folder: {parent_id}")

    async def get_entry(self, entry_id: str) -> FileEntry:
        return await self._require(entry_id)

    async def list_entries(
        self,
        parent_id: Optional[str] = None,
        file_type: Optional[FileType] = None,
    ) -> List[FileEntry]:
        """Direct children of parent_id (root entries when None), optionally one type."""
        filters = {"parent_id": parent_id}
        if file_type is not None:
            filters["type"] = file_type
        return await self.store.find(**filters)

    async def search_entries(
        self,
        query: str = "",
        file_type: Optional[FileType] = None,
    ) -> List[FileEntry]:
        """Entries whose name contains query (case-insensitive), anywhere in the tree."""
        criteria = []
        if query:
            criteria.append(FileEntry.name.ilike(f"%{query}%"))
        filters = {}
        if file_type is not None:
            filters["type"] = file_type
        return await self.store.find(*criteria, **filters)

    async def create_file(
        self,
        filename: str,
        body: bytes,
        parent_id: Optional[str] = None,
    ) -> FileEntry:
        """
        Store an uploaded file under its folder's directory as
        "<ms timestamp>-<name>" and add it to the catalog.
        """
        name = unquote(filename).strip()
        if not sanitize_segment(name):
            raise ValueError(f"Invalid file name: {filename!r}")
        await self._require_folder_or_root(parent_id)
        directory = await folder_directory(self.store, parent_id, self.root)
        target = resolve_storage_path(f"{int(time.time() * 1000)}-{name}", directory)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(body)
        mime_type = detect_mime_type(name)
        try:
            entry = await self.store.create(
                name=name,
                type=get_file_type(mime_type),
                path=relative_path(self.root, target),
                size=len(body),
                mime_type=mime_type,
                parent_id=parent_id,
            )
        except StoreError:
            target.unlink(missing_ok=True)
            raise
        log.info("Stored file id=%s path=%s size=%d", entry.id, entry.path, entry.size)
        return entry

    async def create_folder(self, name: str, parent_id: Optional[str] = None) -> FileEntry:
        """Add a folder entry and create its directory so a later sync maps back to it."""
        safe = sanitize_segment(name or "")
        if not safe:
            raise ValueError("Folder name is required")
        await self._require_folder_or_root(parent_id)
        directory = await folder_directory(self.store, parent_id, self.root)
        (directory / safe).mkdir(parents=True, exist_ok=True)
        folder = await self.store.create(
            name=safe,
            type=FileType.FOLDER,
            path="",
            size=0,
            mime_type=FOLDER_MIME_TYPE,
            parent_id=parent_id,
        )
        log.info("Created folder id=%s name=%s parent_id=%s", folder.id, folder.name, parent_id)
        return folder

    async def delete_entry(self, entry_id: str) -> None:
        """Delete a file (and its disk file) or a folder with everything under it."""
        entry = await self._require(entry_id)
        await self._delete(entry)

    async def _delete(self, entry: FileEntry) -> None:
        if entry.is_folder:
            for child in await self.store.find_children(entry.id):
                await self._delete(child)
        else:
            try:
                remove_file(catalog_file_path(self.root, entry.path))
            except (OSError, ValueError) as e:
                log.warning("Could not delete disk file for id=%s path=%s: %s", entry.id, entry.path, e)
        await self.store.destroy(entry)
        log.info("Deleted entry id=%s name=%s", entry.id, entry.name)

    async def physical_path(self, entry_id: str) -> Path:
        """Disk location of a file entry; folders and missing files are rejected."""
        entry = await self._require(entry_id)
        if entry.is_folder:
            raise ValueError("Cannot download a folder")
        target = catalog_file_path(self.root, entry.path)
        if not file_exists(target):
            raise FileNotFoundError(f"Physical file not found: {entry.path}")
        return target

    async def get_content(self, entry_id: str) -> str:
        """Read a text file from disk and refresh the cached copy."""
        entry = await self._require_text_file(entry_id)
        target = catalog_file_path(self.root, entry.path)
        if not file_exists(target):
            raise FileNotFoundError(f"Physical file not found: {entry.path}")
        content = target.read_text(encoding="utf-8")
        await self.store.update(entry, content=content)
        return content

    async def update_content(self, entry_id: str, content: str) -> FileEntry:
        """Overwrite a text file on disk and in the cache."""
        entry = await self._require_text_file(entry_id)
        target = catalog_file_path(self.root, entry.path)
        if not file_exists(target):
            raise FileNotFoundError(f"Physical file not found: {entry.path}")
        target.write_text(content, encoding="utf-8")
        await self.store.update(entry, content=content, size=target.stat().st_size)
        log.info("Updated content id=%s size=%d", entry.id, entry.size)
        return entry

    async def file_stats(self) -> List[dict]:
        return await self.store.stats_by_type()
