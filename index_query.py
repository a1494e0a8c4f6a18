#!/usr/bin/env python

import argparse
import sqlite3
from pathlib import Path
from typing import Optional

from dee_duper.database.ops import ScanIndex
from dee_duper.models import format_size


def connect_db(db_path: Path) -> sqlite3.Connection:
    if not db_path.exists():
        raise SystemExit(f"Index not found: {db_path}")
    return sqlite3.connect(db_path)


def list_scans(conn: sqlite3.Connection):
    scans = ScanIndex(conn).list_scans()
    if not scans:
        print("No scans recorded in this index.")
        return

    print("Scans:")
    print("id   | started             | status     | files    | groups | base_directory")
    print("-----+---------------------+------------+----------+--------+---------------")
    for s in scans:
        status = "complete" if s.is_complete else "incomplete"
        started = s.start_time.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{s.id:4d} | {started} | {status.ljust(10)} | {s.files_scanned:8d} | {s.groups_found:6d} | {s.base_directory}")


def show_groups(conn: sqlite3.Connection, scan_id: Optional[int]):
    index = ScanIndex(conn)
    session = index.get_scan_info(scan_id) if scan_id is not None else index.get_latest_scan()
    if session is None:
        print(f"No scan with id={scan_id}" if scan_id is not None else "No scans recorded in this index.")
        return

    groups = index.get_duplicate_groups(session.id)
    print(f"Scan {session.id} of {session.base_directory}: {len(groups)} duplicate groups")
    for n, group in enumerate(groups, start=1):
        print(f"\nGroup {n}  {format_size(group.size)}  {group.full_hash[:8]}  ({len(group)} files)")
        for rec in group:
            print(f"  {rec.file_id:6d}  {rec.path}")


def show_file(conn: sqlite3.Connection, path: Path):
    rows = ScanIndex(conn).get_files_by_path(path)
    if not rows:
        print(f"No index rows for path: {path}")
        return

    for rec in rows:
        print("File:")
        print(f"  id:          {rec.file_id}")
        print(f"  path:        {rec.path}")
        print(f"  size:        {rec.size} ({rec.formatted_size})")
        print(f"  modified:    {rec.modified.isoformat()}")
        print(f"  quick_hash:  {rec.quick_hash}")
        print(f"  full_hash:   {rec.full_hash or '(not computed)'}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Query helper for a dee-duper scan index.")
    p.add_argument("--db", required=True, help="Path to the index file (e.g. .dee-duper.1a2b3c4d)")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--scans", action="store_true", help="List every scan session in the index")
    group.add_argument("--groups", action="store_true", help="List duplicate groups of a scan")
    group.add_argument("--file", help="Show the index rows for a file path")
    p.add_argument("--scan-id", type=int, help="Scan to use with --groups (default: latest)")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    db_path = Path(args.db).resolve()
    conn = connect_db(db_path)

    try:
        if args.scans:
            list_scans(conn)
        elif args.groups:
            show_groups(conn, args.scan_id)
        elif args.file:
            show_file(conn, Path(args.file).resolve())
    finally:
        conn.close()


if __name__ == "__main__":
    main()
