import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx
from tqdm import tqdm

from . import config
from .core import DuplicateFinder
from .database.db import DBManager, generate_index_path
from .database.ops import ScanIndex
from .exceptions import DeeDuperError, ScanIndexError
from .generator import generate_test_files
from .progress import PHASE_SCANNING
from .reporting import ReportGenerator
from .web.console import run_console


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Sets up logging to the console and, optionally, a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )

    # Silence chatty libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    common.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")

    p = argparse.ArgumentParser(prog="dee-duper", description="Scan directory for duplicate files")
    p.add_argument("--version", action="version", version=f"%(prog)s {config.VERSION}")
    sub = p.add_subparsers(dest="command", required=True)

    # scan
    s = sub.add_parser("scan", parents=[common], help="Scan directory for duplicate files")
    s.add_argument("dir", nargs="?", type=Path, default=Path("."), help="Directory to scan")
    s.add_argument("-r", "--recursive", action="store_true", help="Scan directories recursively")
    s.add_argument("-n", "--no-web", dest="web", action="store_false",
                   help="Disable web interface, show results in console")
    s.add_argument("-p", "--port", type=int, default=config.DEFAULT_PORT, help="Port for web interface")
    s.add_argument("-i", "--index", type=Path, default=None, help="Path to store the index file")
    s.add_argument("--incomplete", action="store_true", help="Resume an incomplete scan (requires --index)")
    s.add_argument("-e", "--exclude", nargs="+", default=[], metavar="PATTERN", help="Glob patterns to exclude")
    s.add_argument("-w", "--workers", type=int, default=config.DEFAULT_WORKERS,
                   help="Parallel workers for quick hashing")
    s.add_argument("--report-csv", type=Path, default=None, help="Also write the groups to this CSV file")
    s.add_argument("--no-browser", action="store_true", help="Do not open a browser for the web interface")
    s.set_defaults(func=cmd_scan)

    # serve
    sv = sub.add_parser("serve", parents=[common], help="Serve an existing index file")
    sv.add_argument("index_file", type=Path, help="Path to the index file")
    sv.add_argument("-p", "--port", type=int, default=config.DEFAULT_PORT, help="Port for web interface")
    sv.add_argument("--scan-id", type=int, default=None, help="Scan session to serve (default: latest)")
    sv.add_argument("--no-browser", action="store_true", help="Do not open a browser")
    sv.set_defaults(func=cmd_serve)

    # shutdown
    sd = sub.add_parser("shutdown", parents=[common], help="Shutdown the server")
    sd.add_argument("-p", "--port", type=int, default=config.DEFAULT_PORT, help="Port the server listens on")
    sd.add_argument("-d", "--delete-index", action="store_true", help="Delete the index file after shutdown")
    sd.set_defaults(func=cmd_shutdown)

    # generate-test
    g = sub.add_parser("generate-test", parents=[common],
                       help="Generate test files for testing duplicate detection")
    g.add_argument("dir", nargs="?", type=Path, default=Path("./test-dir"),
                   help="Directory to generate test files in")
    g.add_argument("-c", "--count", type=int, default=20, help="Number of files to generate")
    g.add_argument("-d", "--duplicates", type=int, default=2, help="Number of duplicates for each file")
    g.add_argument("--seed", type=int, default=None, help="Random seed for reproducible trees")
    g.set_defaults(func=cmd_generate)

    return p.parse_args(argv)


def cmd_scan(args: argparse.Namespace):
    index_path = args.index
    if args.incomplete and index_path is None:
        raise DeeDuperError("--incomplete needs the index of the interrupted scan (--index).")
    if args.web and index_path is None:
        # The console works off the index, so web mode always persists
        index_path = generate_index_path(args.dir)

    finder = DuplicateFinder(index_path=index_path, max_workers=args.workers)

    with tqdm(desc="Scanning", unit="file", mininterval=1.0) as bar:
        def on_progress(files_scanned: int, groups_found: int, phase: str):
            bar.set_description("Scanning" if phase == PHASE_SCANNING else "Hashing", refresh=False)
            bar.set_postfix(groups=groups_found, refresh=False)
            bar.update(files_scanned - bar.n)

        result = finder.find_duplicates(
            args.dir,
            recursive=args.recursive,
            exclude=args.exclude,
            resume=args.incomplete,
            on_progress=on_progress,
        )

    logging.info(f"Found {len(result.groups)} duplicate groups among {result.files_scanned} files.")
    if result.index_path:
        logging.info(f"Index: {result.index_path} (scan {result.scan_id})")

    report = ReportGenerator(result.groups)
    if args.report_csv:
        report.write_csv(args.report_csv)

    if args.web:
        db = DBManager.open_existing(result.index_path)
        try:
            run_console(db, result.scan_id, port=args.port, open_browser=not args.no_browser)
        finally:
            db.close()
    else:
        report.display_console()


def cmd_serve(args: argparse.Namespace):
    db = DBManager.open_existing(args.index_file)
    try:
        index = ScanIndex(db.conn)
        session = index.get_scan_info(args.scan_id) if args.scan_id else index.get_latest_scan()
        if session is None:
            raise ScanIndexError("Invalid or corrupted index file")

        print("\nLoading index file...")
        print(f"Base directory: {session.base_directory}")
        if session.duration is not None:
            print(f"Scan time: {session.duration.total_seconds():.1f}s")
        else:
            print("Scan time: incomplete (resume with: scan --incomplete --index ...)")
        print(f"Files scanned: {session.files_scanned}")
        print(f"Groups found: {session.groups_found}")

        run_console(db, session.id, port=args.port, open_browser=not args.no_browser)
    finally:
        db.close()


def cmd_shutdown(args: argparse.Namespace):
    url = f"http://localhost:{args.port}/api/shutdown"
    try:
        response = httpx.post(url, json={"delete_index": args.delete_index}, timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise DeeDuperError(f"Failed to shutdown server: {e}") from e
    print("Server shutdown successfully")


def cmd_generate(args: argparse.Namespace):
    print(f"\nGenerating {args.count} files with {args.duplicates} duplicates each in {args.dir}...")
    try:
        generate_test_files(args.dir, args.count, args.duplicates, seed=args.seed)
    except ValueError as e:
        raise DeeDuperError(str(e)) from e
    print("Test files generated successfully!")


def main(argv: Optional[List[str]] = None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        args.func(args)
    except DeeDuperError as e:
        logging.error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error.")
        sys.exit(1)


if __name__ == "__main__":
    main()
