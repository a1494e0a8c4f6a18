import hashlib
import pytest
from dee_duper import config
from dee_duper.exceptions import FileReadError
from dee_duper.progress import ProgressReporter
from dee_duper.scanning.classifier import DuplicateClassifier
from dee_duper.scanning.filesystem import DiskScanner
from dee_duper.scanning.hasher import FileHasher


class CountingHasher(FileHasher):
    """Records which files were fully hashed."""

    def __init__(self):
        self.full_calls = []

    def full_digest(self, path):
        self.full_calls.append(path.name)
        return super().full_digest(path)


def _classify(root, hasher=None, **kwargs):
    hasher = hasher or FileHasher()
    records = list(DiskScanner(hasher).walk(root, recursive=True))
    return DuplicateClassifier(hasher, **kwargs).classify(records)


def test_identical_files_form_one_group(tmp_path, write_tree):
    write_tree(tmp_path, {"a.txt": b"same", "b.txt": b"same", "c.txt": b"diff"})
    groups = _classify(tmp_path)

    assert len(groups) == 1
    assert sorted(p.name for p in groups[0].paths) == ["a.txt", "b.txt"]
    assert groups[0].full_hash == hashlib.sha256(b"same").hexdigest()
    assert groups[0].size == 4


def test_unique_sizes_are_never_hashed(tmp_path, write_tree):
    write_tree(tmp_path, {"a": b"1", "b": b"22", "c": b"333"})
    hasher = CountingHasher()
    assert _classify(tmp_path, hasher) == []
    assert hasher.full_calls == []


def test_quick_hash_mismatch_skips_full_hash(tmp_path, write_tree):
    # Same size, different first bytes
    write_tree(tmp_path, {"a": b"x" * 100, "b": b"y" * 100})
    hasher = CountingHasher()
    assert _classify(tmp_path, hasher) == []
    assert hasher.full_calls == []


def test_same_head_different_tail_is_not_a_duplicate(tmp_path, write_tree):
    head = b"h" * config.QUICK_HASH_BYTES
    write_tree(tmp_path, {"a": head + b"1", "b": head + b"2"})
    hasher = CountingHasher()

    assert _classify(tmp_path, hasher) == []
    assert sorted(hasher.full_calls) == ["a", "b"]


def test_zero_byte_files_group_together(tmp_path, write_tree):
    write_tree(tmp_path, {"e1": b"", "e2": b"", "x": b"content"})
    groups = _classify(tmp_path)
    assert len(groups) == 1
    assert groups[0].size == 0
    assert groups[0].wasted_bytes == 0


def test_groups_ordered_by_size_descending(tmp_path, write_tree):
    write_tree(tmp_path, {
        "small1": b"s" * 10, "small2": b"s" * 10,
        "big1": b"b" * 1000, "big2": b"b" * 1000,
        "mid1": b"m" * 100, "mid2": b"m" * 100, "mid3": b"m" * 100,
    })
    groups = _classify(tmp_path)
    assert [g.size for g in groups] == [1000, 100, 10]
    assert len(groups[1]) == 3


def test_equal_size_groups_keep_discovery_order(tmp_path, write_tree):
    write_tree(tmp_path, {"a1": b"AAAA", "b1": b"BBBB", "a2": b"AAAA", "b2": b"BBBB"})
    groups = _classify(tmp_path)
    assert [g[0].name for g in groups] == ["a1", "b1"]
    assert [r.name for r in groups[0]] == ["a1", "a2"]


def test_unreadable_candidate_is_dropped(tmp_path, write_tree, monkeypatch):
    write_tree(tmp_path, {"a": b"dup", "b": b"dup", "c": b"dup"})
    original = FileHasher.full_digest

    def flaky(self, path):
        if path.name == "c":
            raise FileReadError(path, "Input/output error")
        return original(self, path)

    monkeypatch.setattr(FileHasher, "full_digest", flaky)
    groups = _classify(tmp_path)
    assert len(groups) == 1
    assert [r.name for r in groups[0]] == ["a", "b"]


def test_precomputed_full_hash_is_reused(tmp_path, write_tree):
    write_tree(tmp_path, {"a": b"dup", "b": b"dup"})
    hasher = CountingHasher()
    records = list(DiskScanner(hasher).walk(tmp_path))
    records[0].full_hash = hashlib.sha256(b"dup").hexdigest()

    groups = DuplicateClassifier(hasher).classify(records)
    assert len(groups) == 1
    assert hasher.full_calls == ["b"]


def test_progress_and_on_hashed_hooks(tmp_path, write_tree):
    write_tree(tmp_path, {"a": b"dup", "b": b"dup", "c": b"other"})
    events = []
    hashed = []
    progress = ProgressReporter(lambda files, groups, phase: events.append((groups, phase)))

    groups = _classify(tmp_path, progress=progress, on_hashed=lambda rec: hashed.append(rec.name))

    assert len(groups) == 1
    assert progress.files_hashed == 2
    assert progress.groups_found == 1
    assert sorted(hashed) == ["a", "b"]
    assert all(phase == "hashing" for _, phase in events)
    assert events[-1][0] == 1


@pytest.mark.parametrize("copies", [2, 5])
def test_every_group_member_shares_size_and_hash(tmp_path, write_tree, copies):
    write_tree(tmp_path, {f"f{i}": b"payload" for i in range(copies)})
    groups = _classify(tmp_path)
    assert len(groups) == 1
    group = groups[0]
    assert len(group) == copies
    assert {r.size for r in group} == {7}
    assert {r.full_hash for r in group} == {group.full_hash}
