"""Tests for storage path resolution and directory walking."""

import pytest
from pathlib import Path

from filedock.files.errors import FilesystemReadError
from filedock.files.models import FileType
from filedock.files.storage import (
    catalog_file_path,
    file_exists,
    folder_directory,
    relative_path,
    remove_file,
    resolve_storage_path,
    walk_files,
)


def test_resolve_storage_path_rejects_traversal():
    """Relative path with .. raises ValueError."""
    with pytest.raises(ValueError):
        resolve_storage_path("../../etc/passwd", Path("/data"))


def test_resolve_storage_path_rejects_unsafe_segment() -> None:
    """Path segment with invalid characters (e.g. percent, NUL) raises ValueError."""
    with pytest.raises(ValueError, match="Unsafe path segment"):
        resolve_storage_path("file%;.txt", Path("/data"))
    with pytest.raises(ValueError, match="Unsafe path segment"):
        resolve_storage_path("dir/file\x00name.txt", Path("/data"))


def test_resolve_storage_path_accepts_spaces_and_parens() -> None:
    """Safe segment with spaces and parentheses (e.g. 'File (1).txt') is accepted."""
    got = resolve_storage_path("My File (1).txt", Path("/data"))
    assert got == Path("/data/My File (1).txt")


def test_catalog_file_path_allows_odd_names_but_not_traversal() -> None:
    """Catalog paths keep unusual characters but may not escape the root."""
    assert catalog_file_path(Path("/data"), "a/100%.txt") == Path("/data/a/100%.txt")
    with pytest.raises(ValueError):
        catalog_file_path(Path("/data"), "a/../../etc/passwd")
    with pytest.raises(ValueError):
        catalog_file_path(Path("/data"), "")


def test_walk_files_empty_dir(tmp_path):
    """Empty dir returns empty list."""
    assert walk_files(tmp_path) == []


def test_walk_files_nested_depth_first(tmp_path) -> None:
    """Nested files are listed depth-first in name order; directories are not listed."""
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "b.txt").write_text("b")
    (tmp_path / "a" / "c.txt").write_text("c")
    (tmp_path / "root.txt").write_text("r")
    (tmp_path / "empty").mkdir()
    result = [relative_path(tmp_path, p) for p in walk_files(tmp_path)]
    assert result == ["a/b.txt", "a/c.txt", "root.txt"]


def test_walk_files_skips_symlinks(tmp_path) -> None:
    """Symlinked directories and files are not followed or listed."""
    root = tmp_path / "root"
    (root / "a").mkdir(parents=True)
    (root / "a" / "f.txt").write_text("f")
    (root / "a" / "loop").symlink_to(root / "a", target_is_directory=True)
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("s")
    (root / "link").symlink_to(outside, target_is_directory=True)
    (root / "alias.txt").symlink_to(outside / "secret.txt")
    result = [relative_path(root, p) for p in walk_files(root)]
    assert result == ["a/f.txt"]


def test_file_exists_error_counts_as_absent(tmp_path) -> None:
    """A path that cannot be checked is reported as absent."""
    assert file_exists(tmp_path / "bad\x00name.txt") is False


def test_walk_files_missing_root_raises(tmp_path) -> None:
    """A root that cannot be listed raises FilesystemReadError."""
    with pytest.raises(FilesystemReadError):
        walk_files(tmp_path / "missing")


def test_file_exists(tmp_path) -> None:
    (tmp_path / "here.txt").write_text("x")
    assert file_exists(tmp_path / "here.txt") is True
    assert file_exists(tmp_path / "gone.txt") is False


def test_remove_file(tmp_path):
    """remove_file deletes a file; raises if not found or not a file; keeps parent dir."""
    (tmp_path / "foo").mkdir()
    target = tmp_path / "foo" / "bar.txt"
    target.write_text("content")
    remove_file(target)
    assert not target.exists()
    assert (tmp_path / "foo").is_dir()
    with pytest.raises(FileNotFoundError):
        remove_file(target)
    with pytest.raises(ValueError):
        remove_file(tmp_path / "foo")


@pytest.mark.asyncio
async def test_folder_directory_follows_parent_chain(store, tmp_path) -> None:
    """A nested folder maps to root/<ancestor names>/<name>; None maps to root."""
    outer = await store.create(name="outer", type=FileType.FOLDER, path="", size=0, mime_type="folder")
    inner = await store.create(
        name="inner", type=FileType.FOLDER, path="", size=0, mime_type="folder", parent_id=outer.id
    )
    assert await folder_directory(store, None, tmp_path) == tmp_path
    assert await folder_directory(store, inner.id, tmp_path) == tmp_path / "outer" / "inner"


@pytest.mark.asyncio
async def test_folder_directory_rejects_non_folder(store, tmp_path) -> None:
    """A file id or unknown id is not a valid folder."""
    f = await store.create(name="a.txt", type=FileType.TEXT, path="a.txt", size=1, mime_type="text/plain")
    with pytest.raises(ValueError):
        await folder_directory(store, f.id, tmp_path)
    with pytest.raises(ValueError):
        await folder_directory(store, "nope", tmp_path)
