import os
import pytest
from pathlib import Path
from dee_duper.exceptions import FileReadError, ScanError
from dee_duper.models import FileRecord
from dee_duper.scanning.filesystem import DiskScanner
from dee_duper.scanning.hasher import FileHasher


@pytest.fixture
def tree(tmp_path, write_tree):
    root = tmp_path / "root"
    return write_tree(root, {
        "b.txt": b"bbb",
        "a.txt": b"aaa",
        "sub/c.txt": b"ccc",
        "sub/deeper/d.log": b"ddd",
        "zsub/e.txt": b"eee",
    }).resolve()


def _names(records):
    return [r.path.name for r in records]


def test_non_recursive_ignores_subdirectories(tree):
    records = list(DiskScanner().walk(tree))
    assert _names(records) == ["a.txt", "b.txt"]


def test_recursive_walk_is_depth_first_and_sorted(tree):
    records = list(DiskScanner().walk(tree, recursive=True))
    assert _names(records) == ["a.txt", "b.txt", "c.txt", "d.log", "e.txt"]


def test_records_carry_stat_and_quick_hash(tree):
    rec = next(r for r in DiskScanner().walk(tree) if r.name == "a.txt")
    assert isinstance(rec, FileRecord)
    assert rec.path == tree / "a.txt"
    assert rec.size == 3
    assert rec.quick_hash == FileHasher().quick_digest(tree / "a.txt")
    assert rec.full_hash is None
    assert rec.file_id is None


def test_exclude_by_name_pattern_at_any_depth(tree):
    records = list(DiskScanner(cwd=tree).walk(tree, recursive=True, exclude_patterns=["*.log"]))
    assert "d.log" not in _names(records)
    assert len(records) == 4


def test_exclude_directory_relative_to_cwd(tree, monkeypatch):
    monkeypatch.chdir(tree)
    records = list(DiskScanner().walk(tree, recursive=True, exclude_patterns=["sub"]))
    assert _names(records) == ["a.txt", "b.txt", "e.txt"]

    records = list(DiskScanner().walk(tree, recursive=True, exclude_patterns=["sub/deeper/*"]))
    assert _names(records) == ["a.txt", "b.txt", "c.txt", "e.txt"]


def test_globstar_matches_top_level_directory(tree, write_tree):
    write_tree(tree, {"node_modules/x.js": b"x", "sub/node_modules/y.js": b"y"})
    records = list(DiskScanner(cwd=tree).walk(tree, recursive=True, exclude_patterns=["**/node_modules"]))
    names = _names(records)
    assert "x.js" not in names
    assert "y.js" not in names
    assert len(records) == 5


def test_star_does_not_cross_directories(tree, write_tree):
    write_tree(tree, {"docs/a.md": b"1", "docs/deep/b.md": b"2"})
    records = list(DiskScanner(cwd=tree).walk(tree, recursive=True, exclude_patterns=["docs/*.md"]))
    names = _names(records)
    assert "a.md" not in names
    assert "b.md" in names


def test_star_matches_dotfiles(tree, write_tree):
    write_tree(tree, {".hidden.txt": b"h"})
    records = list(DiskScanner(cwd=tree).walk(tree, exclude_patterns=["*.txt"]))
    assert records == []


def test_excluded_files_are_never_hashed(tree, monkeypatch):
    hashed = []
    original = FileHasher.quick_digest

    def spy(self, path):
        hashed.append(Path(path).name)
        return original(self, path)

    monkeypatch.setattr(FileHasher, "quick_digest", spy)
    list(DiskScanner(cwd=tree).walk(tree, recursive=True, exclude_patterns=["*.txt"]))
    assert hashed == ["d.log"]


def test_skip_paths_are_left_out(tree):
    records = list(DiskScanner().walk(tree, skip_paths={tree / "a.txt"}))
    assert _names(records) == ["b.txt"]


def test_old_index_files_are_never_yielded(tree):
    (tree / ".dee-duper.deadbeef").write_bytes(b"SQLite format 3\x00")
    (tree / ".dee-duper.deadbeef-wal").write_bytes(b"wal")
    (tree / ".dee-duper.deadbeef-shm").write_bytes(b"shm")
    records = list(DiskScanner().walk(tree))
    assert _names(records) == ["a.txt", "b.txt"]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
def test_symlinks_are_not_followed(tree, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "x.txt").write_bytes(b"xxx")
    os.symlink(tree / "a.txt", tree / "link.txt")
    os.symlink(outside, tree / "linkdir")

    records = list(DiskScanner().walk(tree, recursive=True))
    names = _names(records)
    assert "link.txt" not in names
    assert "x.txt" not in names


def test_missing_root_raises_scan_error(tmp_path):
    with pytest.raises(ScanError):
        list(DiskScanner().walk(tmp_path / "missing"))


def test_file_root_raises_scan_error(tree):
    with pytest.raises(ScanError):
        list(DiskScanner().walk(tree / "a.txt"))


def test_unlistable_root_raises_scan_error(tree, monkeypatch):
    def denied(self, directory):
        raise ScanError(directory, "Permission denied")

    monkeypatch.setattr(DiskScanner, "_list_directory", denied)
    with pytest.raises(ScanError):
        DiskScanner().check_root(tree)
    with pytest.raises(ScanError):
        list(DiskScanner().walk(tree))


def test_check_root_returns_resolved_path(tree, monkeypatch):
    monkeypatch.chdir(tree.parent)
    assert DiskScanner().check_root(Path(tree.name)) == tree


def test_unreadable_file_is_skipped(tree, monkeypatch):
    original = FileHasher.quick_digest

    def flaky(self, path):
        if Path(path).name == "a.txt":
            raise FileReadError(path, "Permission denied")
        return original(self, path)

    monkeypatch.setattr(FileHasher, "quick_digest", flaky)
    records = list(DiskScanner().walk(tree))
    assert _names(records) == ["b.txt"]


def test_unlistable_subdirectory_is_skipped(tree, monkeypatch):
    original = DiskScanner._list_directory

    def flaky(self, directory):
        if directory.name == "sub":
            raise ScanError(directory, "Permission denied")
        return original(self, directory)

    monkeypatch.setattr(DiskScanner, "_list_directory", flaky)
    records = list(DiskScanner().walk(tree, recursive=True))
    assert _names(records) == ["a.txt", "b.txt", "e.txt"]


def test_parallel_walk_matches_sequential(tree):
    sequential = list(DiskScanner().walk(tree, recursive=True))
    parallel = list(DiskScanner().walk(tree, recursive=True, max_workers=4))
    assert [r.path for r in parallel] == [r.path for r in sequential]
    assert [r.quick_hash for r in parallel] == [r.quick_hash for r in sequential]


def test_known_records_are_reused_when_unchanged(tree, monkeypatch):
    first = {r.path: r for r in DiskScanner().walk(tree)}
    first[tree / "a.txt"].file_id = 7

    (tree / "b.txt").write_bytes(b"changed content")

    hashed = []
    original = FileHasher.quick_digest

    def spy(self, path):
        hashed.append(Path(path).name)
        return original(self, path)

    monkeypatch.setattr(FileHasher, "quick_digest", spy)
    records = {r.path.name: r for r in DiskScanner().walk(tree, known_records=first)}

    assert records["a.txt"].file_id == 7
    assert records["b.txt"].file_id is None
    assert records["b.txt"].size == len(b"changed content")
    assert hashed == ["b.txt"]
