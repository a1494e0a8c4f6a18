"""
Scan index schema definitions.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 1

def init_schema(conn: sqlite3.Connection):
    """
    Applies the index schema to the database.
    Idempotent: safe to run on every open.
    """
    with conn:
        # 1. Version Tracking (For future migrations)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. Scan Sessions
        # end_time stays NULL until the scan completes; NULL means "incomplete"
        conn.execute("""
        CREATE TABLE IF NOT EXISTS scan_info (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            base_directory  TEXT NOT NULL,
            start_time      REAL NOT NULL,
            end_time        REAL,
            files_scanned   INTEGER NOT NULL DEFAULT 0,
            groups_found    INTEGER NOT NULL DEFAULT 0
        );
        """)

        # 3. File Rows (one per discovered file, append-only per scan)
        # group_id is the full hash once the file has been promoted past the quick hash stage
        conn.execute("""
        CREATE TABLE IF NOT EXISTS files (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            scan_id         INTEGER NOT NULL,
            path            TEXT NOT NULL,
            size            INTEGER NOT NULL,
            created         REAL NOT NULL,
            modified        REAL NOT NULL,
            quick_hash      TEXT NOT NULL,
            full_hash       TEXT,
            group_id        TEXT,
            FOREIGN KEY(scan_id) REFERENCES scan_info(id) ON DELETE CASCADE
        );
        """)

        # 4. Indices for Performance
        conn.execute("CREATE INDEX IF NOT EXISTS idx_files_group_id ON files(group_id);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_files_scan_id ON files(scan_id);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_files_path ON files(path);")

    logging.debug("Index schema initialized.")
