"""Tests for the directory reconciler (disk -> catalog sync)."""

import asyncio
import logging
import mimetypes
from pathlib import Path, PurePosixPath

import pytest

from filedock.files.errors import FilesystemReadError, StoreError
from filedock.files.models import FileType
from filedock.files.sync import DirectoryReconciler


def _write(root: Path, rel: str, data: str = "x") -> Path:
    target = root / rel
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(data)
    return target


async def _by_path(store):
    return {e.path: e for e in await store.find_all() if e.type != FileType.FOLDER}


async def _folders(store):
    return [e for e in await store.find_all() if e.type == FileType.FOLDER]


@pytest.mark.asyncio
async def test_sync_adds_file_with_folder_chain(store, tmp_path: Path) -> None:
    """a/b/report.pdf creates folders a and b (b under a) and a pdf entry under b."""
    _write(tmp_path, "a/b/report.pdf", "%PDF-1.4")
    await DirectoryReconciler(store, tmp_path).synchronize()

    folders = {f.name: f for f in await _folders(store)}
    assert set(folders) == {"a", "b"}
    assert folders["a"].parent_id is None
    assert folders["b"].parent_id == folders["a"].id
    assert folders["a"].path == ""
    assert folders["a"].size == 0
    assert folders["a"].mime_type == "folder"

    files = await _by_path(store)
    report = files["a/b/report.pdf"]
    assert report.name == "report.pdf"
    assert report.type == FileType.PDF
    assert report.mime_type == "application/pdf"
    assert report.parent_id == folders["b"].id
    assert report.size == len("%PDF-1.4")


@pytest.mark.asyncio
async def test_sync_root_file_has_no_parent(store, tmp_path: Path) -> None:
    """A file directly in the root gets parent_id None and no folder rows."""
    _write(tmp_path, "notes.txt", "hello")
    await DirectoryReconciler(store, tmp_path).synchronize()
    files = await _by_path(store)
    assert files["notes.txt"].parent_id is None
    assert files["notes.txt"].type == FileType.TEXT
    assert await _folders(store) == []


@pytest.mark.asyncio
async def test_sync_is_idempotent(store, tmp_path: Path) -> None:
    """A second pass with no disk changes adds and removes nothing."""
    _write(tmp_path, "x/one.txt")
    _write(tmp_path, "x/y/two.jpg")
    _write(tmp_path, "three.mp3")
    reconciler = DirectoryReconciler(store, tmp_path)
    await reconciler.synchronize()
    first = {e.id: (e.path, e.parent_id) for e in await store.find_all()}
    await reconciler.synchronize()
    second = {e.id: (e.path, e.parent_id) for e in await store.find_all()}
    assert first == second
    assert len(await _by_path(store)) == 3


@pytest.mark.asyncio
async def test_sync_removes_missing_file(store, tmp_path: Path) -> None:
    """An entry whose file is not on disk is deleted."""
    await store.create(
        name="old.txt", type=FileType.TEXT, path="old.txt", size=3, mime_type="text/plain"
    )
    await DirectoryReconciler(store, tmp_path).synchronize()
    assert await store.find_one(path="old.txt") is None


@pytest.mark.asyncio
async def test_sync_shares_folder_between_siblings(store, tmp_path: Path) -> None:
    """x/one.txt and x/two.txt end up under a single folder x."""
    _write(tmp_path, "x/one.txt")
    _write(tmp_path, "x/two.txt")
    await DirectoryReconciler(store, tmp_path).synchronize()
    folders = await _folders(store)
    assert [f.name for f in folders] == ["x"]
    files = await _by_path(store)
    assert files["x/one.txt"].parent_id == folders[0].id
    assert files["x/two.txt"].parent_id == folders[0].id


@pytest.mark.asyncio
async def test_sync_reuses_existing_folder_row(store, tmp_path: Path) -> None:
    """A folder created earlier (e.g. via the API) is reused, not duplicated."""
    existing = await store.create(
        name="docs", type=FileType.FOLDER, path="", size=0, mime_type="folder"
    )
    _write(tmp_path, "docs/readme.md")
    await DirectoryReconciler(store, tmp_path).synchronize()
    assert [f.id for f in await _folders(store)] == [existing.id]
    assert (await _by_path(store))["docs/readme.md"].parent_id == existing.id


@pytest.mark.asyncio
async def test_sync_corrects_application_mp4(store, tmp_path: Path, monkeypatch) -> None:
    """A detected application/mp4 is stored as video/mp4 with type video."""
    real_guess = mimetypes.guess_type

    def fake_guess(name, strict=True):
        if str(name).endswith(".mp4"):
            return ("application/mp4", None)
        return real_guess(name, strict)

    monkeypatch.setattr(mimetypes, "guess_type", fake_guess)
    _write(tmp_path, "clip.mp4")
    await DirectoryReconciler(store, tmp_path).synchronize()
    clip = (await _by_path(store))["clip.mp4"]
    assert clip.mime_type == "video/mp4"
    assert clip.type == FileType.VIDEO


@pytest.mark.asyncio
async def test_sync_keeps_emptied_folders(store, tmp_path: Path) -> None:
    """When a folder's last file disappears, the file row goes but the folder row stays."""
    target = _write(tmp_path, "x/only.txt")
    reconciler = DirectoryReconciler(store, tmp_path)
    await reconciler.synchronize()
    target.unlink()
    await reconciler.synchronize()
    assert await _by_path(store) == {}
    assert [f.name for f in await _folders(store)] == ["x"]


@pytest.mark.asyncio
async def test_sync_rename_is_remove_plus_insert(store, tmp_path: Path) -> None:
    """Renaming on disk yields a new entry with a new id; the old one is gone."""
    target = _write(tmp_path, "a.txt", "same")
    reconciler = DirectoryReconciler(store, tmp_path)
    await reconciler.synchronize()
    old_id = (await _by_path(store))["a.txt"].id
    target.rename(tmp_path / "b.txt")
    await reconciler.synchronize()
    files = await _by_path(store)
    assert set(files) == {"b.txt"}
    assert files["b.txt"].id != old_id


@pytest.mark.asyncio
async def test_sync_missing_root_raises(store, tmp_path: Path) -> None:
    """An unreadable storage root aborts the pass with FilesystemReadError."""
    with pytest.raises(FilesystemReadError):
        await DirectoryReconciler(store, tmp_path / "does-not-exist").synchronize()


@pytest.mark.asyncio
async def test_sync_serializes_with_lock(store, tmp_path: Path) -> None:
    """Two passes sharing a lock do not insert duplicates."""
    _write(tmp_path, "x/one.txt")
    lock = asyncio.Lock()
    reconciler = DirectoryReconciler(store, tmp_path, lock=lock)
    await asyncio.gather(reconciler.synchronize(), reconciler.synchronize())
    assert len(await _by_path(store)) == 1
    assert len(await _folders(store)) == 1


@pytest.mark.asyncio
async def test_ensure_folder_is_idempotent(store, tmp_path: Path) -> None:
    """ensure_folder returns the same row for the same path."""
    reconciler = DirectoryReconciler(store, tmp_path)
    first = await reconciler.ensure_folder(PurePosixPath("p/q"))
    second = await reconciler.ensure_folder(PurePosixPath("p/q"))
    assert first.id == second.id
    assert len(await _folders(store)) == 2


@pytest.mark.asyncio
async def test_sync_does_not_follow_symlinks(store, tmp_path: Path) -> None:
    """A symlink loop and a symlink leaving the root add nothing to the catalog."""
    root = tmp_path / "root"
    _write(root, "a/f.txt")
    (root / "a" / "loop").symlink_to(root / "a", target_is_directory=True)
    _write(tmp_path, "outside/secret.txt", "s")
    (root / "link").symlink_to(tmp_path / "outside", target_is_directory=True)
    await DirectoryReconciler(store, root).synchronize()
    assert set(await _by_path(store)) == {"a/f.txt"}
    assert [f.name for f in await _folders(store)] == ["a"]


@pytest.mark.asyncio
async def test_sync_existence_error_counts_as_absent(store, tmp_path: Path, monkeypatch) -> None:
    """If checking a cataloged file raises, the pass treats it as gone."""
    _write(tmp_path, "blocked.txt")
    _write(tmp_path, "fine.txt")
    reconciler = DirectoryReconciler(store, tmp_path)
    await reconciler.synchronize()

    real_exists = Path.exists

    def exists(self, *args, **kwargs):
        if self.name == "blocked.txt":
            raise PermissionError("denied")
        return real_exists(self, *args, **kwargs)

    monkeypatch.setattr(Path, "exists", exists)
    await reconciler.synchronize()
    assert set(await _by_path(store)) == {"fine.txt"}


@pytest.mark.asyncio
async def test_sync_store_error_keeps_earlier_inserts(store, tmp_path: Path, monkeypatch) -> None:
    """A failed insert aborts the pass; rows committed before it stay."""
    for name in ("a.txt", "b.txt", "c.txt"):
        _write(tmp_path, name)
    real_create = store.create
    calls = []

    async def create(**attrs):
        calls.append(attrs["name"])
        if len(calls) == 3:
            raise StoreError("disk full")
        return await real_create(**attrs)

    monkeypatch.setattr(store, "create", create)
    with pytest.raises(StoreError, match="disk full"):
        await DirectoryReconciler(store, tmp_path).synchronize()
    assert set(await _by_path(store)) == {"a.txt", "b.txt"}


@pytest.mark.asyncio
async def test_startup_sync_logs_failure_and_returns(init_test_db, tmp_path: Path, monkeypatch, caplog) -> None:
    """A failing startup pass is logged at ERROR and does not raise."""
    from filedock.main import _startup_sync

    monkeypatch.setenv("FILEDOCK_STORAGE_BASE_PATH", str(tmp_path / "missing"))
    with caplog.at_level(logging.ERROR, logger="filedock.main"):
        await _startup_sync(asyncio.Lock())
    assert "Startup sync failed" in caplog.text
