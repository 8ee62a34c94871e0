"""Directory reconciler: make the catalog match what is on disk.

A full rescan, not a watcher. Disk and catalog are matched on the relative
path string only, so a file renamed or moved on disk comes back as a removal
plus a fresh insert (new id, cached content dropped).

Folder rows are never removed here, even when the pass leaves them empty.
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Optional

from filedock.files.classify import detect_mime_type, get_file_type
from filedock.files.models import FOLDER_MIME_TYPE, FileEntry, FileType
from filedock.files.storage import file_exists, file_size, relative_path, walk_files
from filedock.files.store import FileStore

log = logging.getLogger(__name__)


class DirectoryReconciler:
    """Rescans `root` into `store`. Pass a shared lock to serialize passes."""

    def __init__(
        self,
        store: FileStore,
        root: Path,
        lock: Optional[asyncio.Lock] = None,
    ) -> None:
        self.store = store
        self.root = root
        self._lock = lock

    async def synchronize(self) -> None:
        """
        Insert entries for files on disk that the catalog lacks, then delete
        file entries whose file is gone. FilesystemReadError and StoreError
        propagate; changes already committed stay committed.
        """
        if self._lock is None:
            await self._synchronize()
            return
        if self._lock.locked():
            log.info("Sync already running; waiting for it to finish")
        async with self._lock:
            await self._synchronize()

    async def _synchronize(self) -> None:
        log.info("Sync started root=%s", self.root)
        snapshot = await self.store.find_all()
        known_paths = {e.path for e in snapshot if e.type != FileType.FOLDER}

        added = 0
        for disk_path in walk_files(self.root):
            rel = relative_path(self.root, disk_path)
            size = file_size(disk_path)
            mime_type = detect_mime_type(disk_path)
            if rel in known_paths:
                continue
            parent = PurePosixPath(rel).parent
            parent_id = None
            if str(parent) != ".":
                folder = await self.ensure_folder(parent)
                parent_id = folder.id
            await self.store.create(
                name=disk_path.name,
                type=get_file_type(mime_type),
                path=rel,
                size=size,
                mime_type=mime_type,
                parent_id=parent_id,
            )
            known_paths.add(rel)
            added += 1
            log.info("Sync added file path=%s type=%s", rel, get_file_type(mime_type).value)

        removed = 0
        for entry in snapshot:
            if entry.type == FileType.FOLDER:
                continue
            if file_exists(self.root / entry.path):
                continue
            await self.store.destroy(entry)
            removed += 1
            log.info("Sync removed entry id=%s path=%s", entry.id, entry.path)

        log.info("Sync complete added=%d removed=%d", added, removed)

    async def ensure_folder(self, folder_path: PurePosixPath) -> FileEntry:
        """
        Folder entry for a relative directory path, creating it (and its
        ancestors, top-down) when missing. Matched by name and parent_id.
        """
        parent_id = None
        if str(folder_path.parent) != ".":
            parent = await self.ensure_folder(folder_path.parent)
            parent_id = parent.id
        folder = await self.store.find_one(
            name=folder_path.name, type=FileType.FOLDER, parent_id=parent_id
        )
        if folder is None:
            folder = await self.store.create(
                name=folder_path.name,
                type=FileType.FOLDER,
                path="",
                size=0,
                mime_type=FOLDER_MIME_TYPE,
                parent_id=parent_id,
            )
            log.info("Sync created folder name=%s parent_id=%s", folder.name, parent_id)
        return folder
