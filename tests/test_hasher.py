import hashlib
import pytest
from dee_duper import config
from dee_duper.exceptions import FileReadError
from dee_duper.scanning.hasher import FileHasher

def test_small_file_quick_equals_full(tmp_path):
    p = tmp_path / "small.bin"
    data = b"hello world" * 10
    p.write_bytes(data)

    hasher = FileHasher()
    expected = hashlib.sha256(data).hexdigest()
    assert hasher.quick_digest(p) == expected
    assert hasher.full_digest(p) == expected

def test_quick_digest_only_covers_head(tmp_path):
    head = b"a" * config.QUICK_HASH_BYTES
    a = tmp_path / "a.bin"
    b = tmp_path / "b.bin"
    a.write_bytes(head + b"tail-one")
    b.write_bytes(head + b"tail-two")

    hasher = FileHasher()
    assert hasher.quick_digest(a) == hashlib.sha256(head).hexdigest()
    assert hasher.quick_digest(a) == hasher.quick_digest(b)
    # Full digest sees the differing tail
    assert hasher.full_digest(a) != hasher.full_digest(b)
    assert hasher.full_digest(a) == hashlib.sha256(head + b"tail-one").hexdigest()

def test_empty_file(tmp_path):
    p = tmp_path / "empty"
    p.write_bytes(b"")
    hasher = FileHasher()
    assert hasher.quick_digest(p) == hashlib.sha256(b"").hexdigest()
    assert hasher.full_digest(p) == hasher.quick_digest(p)

def test_missing_file_raises_file_read_error(tmp_path):
    missing = tmp_path / "nope.bin"
    hasher = FileHasher()
    with pytest.raises(FileReadError) as exc:
        hasher.quick_digest(missing)
    assert exc.value.path == missing
    with pytest.raises(FileReadError):
        hasher.full_digest(missing)
