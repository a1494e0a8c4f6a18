import sqlite3
import time
import functools
from datetime import datetime
from itertools import groupby
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..exceptions import ScanIndexError
from ..models import DuplicateGroup, FileRecord, ScanSession

_FILE_COLUMNS = "id, path, size, created, modified, quick_hash, full_hash, group_id"
_SCAN_COLUMNS = "id, base_directory, start_time, end_time, files_scanned, groups_found"


def _index_operation(func):
    """Surfaces any SQLite failure as ScanIndexError."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except sqlite3.Error as e:
            raise ScanIndexError(f"{func.__name__} failed: {e}") from e
    return wrapper


def _row_to_record(row) -> FileRecord:
    file_id, path, size, created, modified, quick_hash, full_hash, _group_id = row
    p = Path(path)
    return FileRecord(
        path=p,
        name=p.name,
        size=size,
        created=datetime.fromtimestamp(created),
        modified=datetime.fromtimestamp(modified),
        quick_hash=quick_hash,
        full_hash=full_hash,
        file_id=file_id,
    )


def _row_to_session(row) -> ScanSession:
    scan_id, base_dir, start, end, files_scanned, groups_found = row
    return ScanSession(
        id=scan_id,
        base_directory=base_dir,
        start_time=datetime.fromtimestamp(start),
        end_time=datetime.fromtimestamp(end) if end is not None else None,
        files_scanned=files_scanned,
        groups_found=groups_found,
    )


class ScanIndex:
    """
    Durable ledger of one or more scans: sessions, file rows and group assignments.

    Nothing here commits on its own; callers decide the batch boundaries.
    Mutations (delete_file / update_file_path) must only be called after the
    matching filesystem operation has already succeeded.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @_index_operation
    def commit(self):
        self.conn.commit()

    # --- Scan Sessions ---

    @_index_operation
    def start_scan(self, base_directory: Union[str, Path]) -> int:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO scan_info (base_directory, start_time) VALUES (?, ?)",
            (str(base_directory), time.time()),
        )
        if cur.lastrowid is None:
            raise ScanIndexError("Database INSERT failed to return a scan ID.")
        return cur.lastrowid

    @_index_operation
    def update_progress(self, scan_id: int, files_scanned: int, groups_found: int):
        self.conn.execute(
            "UPDATE scan_info SET files_scanned = ?, groups_found = ? WHERE id = ?",
            (files_scanned, groups_found, scan_id),
        )

    @_index_operation
    def complete_scan(self, scan_id: int):
        self.conn.execute("UPDATE scan_info SET end_time = ? WHERE id = ?", (time.time(), scan_id))

    @_index_operation
    def get_scan_info(self, scan_id: int) -> Optional[ScanSession]:
        cur = self.conn.cursor()
        cur.execute(f"SELECT {_SCAN_COLUMNS} FROM scan_info WHERE id = ?", (scan_id,))
        row = cur.fetchone()
        return _row_to_session(row) if row else None

    @_index_operation
    def get_latest_scan(self) -> Optional[ScanSession]:
        cur = self.conn.cursor()
        cur.execute(f"SELECT {_SCAN_COLUMNS} FROM scan_info ORDER BY id DESC LIMIT 1")
        row = cur.fetchone()
        return _row_to_session(row) if row else None

    @_index_operation
    def find_incomplete_scan(self, base_directory: Union[str, Path]) -> Optional[ScanSession]:
        """Latest session for base_directory that never reached complete_scan()."""
        cur = self.conn.cursor()
        cur.execute(f"""
            SELECT {_SCAN_COLUMNS} FROM scan_info
            WHERE base_directory = ? AND end_time IS NULL
            ORDER BY id DESC LIMIT 1
        """, (str(base_directory),))
        row = cur.fetchone()
        return _row_to_session(row) if row else None

    @_index_operation
    def list_scans(self) -> List[ScanSession]:
        cur = self.conn.cursor()
        cur.execute(f"SELECT {_SCAN_COLUMNS} FROM scan_info ORDER BY id")
        return [_row_to_session(r) for r in cur.fetchall()]

    # --- File Rows ---

    @_index_operation
    def add_file(self, scan_id: int, rec: FileRecord, group_id: Optional[str] = None) -> int:
        """
        Appends a file row. Path uniqueness is NOT enforced: adding the same path
        twice to one scan yields two rows.
        """
        cur = self.conn.cursor()
        cur.execute("""
            INSERT INTO files (
                scan_id, path, size, created, modified,
                quick_hash, full_hash, group_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            scan_id, str(rec.path), rec.size,
            rec.created.timestamp(), rec.modified.timestamp(),
            rec.quick_hash, rec.full_hash, group_id,
        ))
        if cur.lastrowid is None:
            raise ScanIndexError("Database INSERT failed to return a row ID.")
        return cur.lastrowid

    @_index_operation
    def get_files(self, scan_id: int) -> List[FileRecord]:
        cur = self.conn.cursor()
        cur.execute(f"SELECT {_FILE_COLUMNS} FROM files WHERE scan_id = ? ORDER BY id", (scan_id,))
        return [_row_to_record(r) for r in cur.fetchall()]

    @_index_operation
    def get_files_by_path(self, path: Union[str, Path]) -> List[FileRecord]:
        cur = self.conn.cursor()
        cur.execute(f"SELECT {_FILE_COLUMNS} FROM files WHERE path = ? ORDER BY id", (str(path),))
        return [_row_to_record(r) for r in cur.fetchall()]

    @_index_operation
    def has_file(self, scan_id: int, path: Union[str, Path]) -> bool:
        cur = self.conn.cursor()
        cur.execute("SELECT 1 FROM files WHERE scan_id = ? AND path = ? LIMIT 1", (scan_id, str(path)))
        return cur.fetchone() is not None

    @_index_operation
    def remove_files(self, file_ids: Iterable[int]) -> int:
        cur = self.conn.cursor()
        cur.executemany("DELETE FROM files WHERE id = ?", [(fid,) for fid in file_ids])
        return cur.rowcount

    @_index_operation
    def update_file_hash(self, file_id: int, full_hash: str, group_id: Optional[str]):
        self.conn.execute(
            "UPDATE files SET full_hash = ?, group_id = ? WHERE id = ?",
            (full_hash, group_id, file_id),
        )

    @_index_operation
    def get_duplicate_groups(self, scan_id: int) -> List[DuplicateGroup]:
        """
        Groups with at least two surviving rows, largest first, ties broken by the
        group's earliest row. Same ordering contract as the in-memory classifier.
        """
        cur = self.conn.cursor()
        cur.execute("""
            SELECT f.id, f.path, f.size, f.created, f.modified, f.quick_hash, f.full_hash, f.group_id
            FROM files f
            JOIN (
                SELECT group_id, MIN(id) AS first_id, MAX(size) AS group_size
                FROM files
                WHERE scan_id = ? AND group_id IS NOT NULL
                GROUP BY group_id
                HAVING COUNT(*) > 1
            ) g ON f.group_id = g.group_id
            WHERE f.scan_id = ?
            ORDER BY g.group_size DESC, g.first_id ASC, f.id ASC
        """, (scan_id, scan_id))

        groups = []
        for group_id, rows in groupby(cur.fetchall(), key=lambda r: r[7]):
            groups.append(DuplicateGroup(full_hash=group_id, files=[_row_to_record(r) for r in rows]))
        return groups

    # --- Mutations (filesystem first, then these) ---

    @_index_operation
    def delete_file(self, path: Union[str, Path]) -> int:
        """Removes every row for path. Remaining rows keep their group_id."""
        cur = self.conn.cursor()
        cur.execute("DELETE FROM files WHERE path = ?", (str(path),))
        return cur.rowcount

    @_index_operation
    def update_file_path(self, old_path: Union[str, Path], new_path: Union[str, Path]) -> int:
        """Renames in place; hashes, size and group are untouched since content did not change."""
        cur = self.conn.cursor()
        cur.execute("UPDATE files SET path = ? WHERE path = ?", (str(new_path), str(old_path)))
        return cur.rowcount
