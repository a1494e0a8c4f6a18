"""
Scan index connection management.
"""
import os
import sqlite3
import logging
import threading
from pathlib import Path
from typing import Optional, Union

from .. import config
from ..exceptions import ScanIndexError
from .schema import init_schema


def generate_index_path(base_dir: Union[str, Path]) -> Path:
    """Returns a fresh index location inside base_dir, e.g. base/.dee-duper.1a2b3c4d"""
    return Path(base_dir) / f"{config.INDEX_FILE_PREFIX}{os.urandom(4).hex()}"


def index_side_files(index_path: Path) -> set:
    """The index file plus the files SQLite keeps next to it."""
    index_path = Path(index_path)
    paths = {index_path}
    for suffix in config.SQLITE_SIDE_SUFFIXES:
        paths.add(index_path.with_name(index_path.name + suffix))
    return paths


class DBManager:
    def __init__(self, db_path: Union[str, Path]):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        # The console serves requests from a thread pool; writes need serialization
        self._write_lock = threading.Lock()

    @classmethod
    def open_existing(cls, db_path: Union[str, Path]) -> "DBManager":
        """For reading an index produced by an earlier run. Refuses to create a new file."""
        if not Path(db_path).is_file():
            raise ScanIndexError(f"Index file not found: {db_path}")
        manager = cls(db_path)
        manager.connect()
        return manager

    def connect(self) -> sqlite3.Connection:
        """
        Connects to the SQLite index and configures performance pragmas.
        """
        if self._conn:
            return self._conn

        logging.info(f"Opening scan index: {self.db_path}")
        conn = None
        try:
            # check_same_thread=False: the console hands the connection to worker threads,
            # guarded by write_lock
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            if str(self.db_path) != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            # Safe for single-writer, multi-reader
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA temp_store=MEMORY;")
            conn.execute("PRAGMA foreign_keys=ON;")

            # Ensure schema exists
            init_schema(conn)
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            raise ScanIndexError(f"Cannot open scan index {self.db_path}: {e}") from e

        self._conn = conn
        return self._conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self.connect()

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def write_lock(self) -> threading.Lock:
        """Returns the write lock for thread-safe index operations."""
        return self._write_lock
