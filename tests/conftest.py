import pytest
import sqlite3
from datetime import datetime
from pathlib import Path
from dee_duper.database.schema import init_schema
from dee_duper.database.ops import ScanIndex
from dee_duper.models import FileRecord

@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    c.execute("PRAGMA foreign_keys=ON;")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()

@pytest.fixture
def index(conn):
    """Returns a ScanIndex attached to the in-memory DB."""
    return ScanIndex(conn)

@pytest.fixture
def make_record():
    """Factory for FileRecords that never touch the disk."""
    def _make(path, size=100, quick_hash="q", full_hash=None):
        p = Path(path)
        dt = datetime(2024, 5, 1, 12, 0, 0)
        return FileRecord(
            path=p,
            name=p.name,
            size=size,
            created=dt,
            modified=dt,
            quick_hash=quick_hash,
            full_hash=full_hash,
        )
    return _make

@pytest.fixture
def write_tree():
    """Writes {relative_path: bytes} under a root and returns the root."""
    def _write(root: Path, files: dict) -> Path:
        for rel, data in files.items():
            p = root / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(data)
        return root
    return _write
