import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from . import config
from .database.db import DBManager, index_side_files
from .database.ops import ScanIndex
from .exceptions import DeeDuperError
from .models import FileRecord, ScanResult
from .progress import ProgressCallback, ProgressReporter
from .scanning.classifier import DuplicateClassifier
from .scanning.filesystem import DiskScanner
from .scanning.hasher import FileHasher


class DuplicateFinder:
    def __init__(self,
                 index_path: Optional[Union[str, Path]] = None,
                 max_workers: int = config.DEFAULT_WORKERS,
                 hasher: Optional[FileHasher] = None):
        """
        Args:
            index_path: SQLite scan index to persist into. None keeps the scan in memory.
            max_workers: Number of parallel workers for quick hashing during the walk.
        """
        self.index_path = Path(index_path).resolve() if index_path else None
        self.max_workers = max_workers
        self.hasher = hasher or FileHasher()

    def find_duplicates(self,
                        root: Union[str, Path],
                        recursive: bool = False,
                        exclude: Iterable[str] = (),
                        resume: bool = False,
                        on_progress: Optional[ProgressCallback] = None) -> ScanResult:
        """
        Executes one scan.
        1. Walk (stat + quick hash every regular file)
        2. Classify (size -> quick hash -> full hash)
        3. Persist group assignments and close the session (indexed scans only)
        """
        exclude = list(exclude or [])
        # Root must exist and be listable before a session row is written
        root = DiskScanner(self.hasher).check_root(root)

        if self.index_path is None:
            if resume:
                raise DeeDuperError("Resuming a scan requires an index file (--index).")
            return self._scan_in_memory(root, recursive, exclude, on_progress)

        with DBManager(self.index_path) as conn:
            return self._scan_indexed(ScanIndex(conn), root, recursive, exclude, resume, on_progress)

    def _scan_in_memory(self,
                        root: Path,
                        recursive: bool,
                        exclude: List[str],
                        on_progress: Optional[ProgressCallback]) -> ScanResult:
        logging.info(f"Scanning {root} (recursive={recursive})...")
        progress = ProgressReporter(on_progress)
        scanner = DiskScanner(self.hasher)

        records = []
        for record in scanner.walk(root, recursive, exclude, max_workers=self.max_workers):
            records.append(record)
            progress.file_scanned()

        logging.info(f"Scan complete. Processed {progress.files_scanned} files.")

        classifier = DuplicateClassifier(self.hasher, progress)
        groups = classifier.classify(records)
        return ScanResult(groups=groups, files_scanned=progress.files_scanned)

    def _scan_indexed(self,
                      index: ScanIndex,
                      root: Path,
                      recursive: bool,
                      exclude: List[str],
                      resume: bool,
                      on_progress: Optional[ProgressCallback]) -> ScanResult:
        # --- Session: reopen an interrupted one or start fresh ---
        session = index.find_incomplete_scan(root) if resume else None
        known_records: Dict[Path, FileRecord] = {}
        previous_ids = set()

        if session:
            scan_id = session.id
            for rec in index.get_files(scan_id):
                previous_ids.add(rec.file_id)
                # Earlier rows win if an older build wrote the same path twice
                known_records.setdefault(rec.path, rec)
            logging.info(f"Resuming scan {scan_id} of {root}: {len(known_records)} files already indexed.")
        else:
            if resume:
                logging.info(f"No incomplete scan of {root} found; starting a new one.")
            scan_id = index.start_scan(root)
            index.commit()
            logging.info(f"Scanning {root} (recursive={recursive}, scan_id={scan_id})...")

        progress = ProgressReporter(
            on_progress,
            sink=lambda files, groups: index.update_progress(scan_id, files, groups),
        )
        scanner = DiskScanner(self.hasher)

        # --- Step 1: Walk ---
        records: List[FileRecord] = []
        kept_ids = set()
        for record in scanner.walk(root, recursive, exclude,
                                   skip_paths=index_side_files(self.index_path),
                                   max_workers=self.max_workers,
                                   known_records=known_records):
            if record.file_id is None:
                record.file_id = index.add_file(scan_id, record)
            else:
                kept_ids.add(record.file_id)
            records.append(record)
            progress.file_scanned()

            if progress.files_scanned % config.COMMIT_INTERVAL == 0:
                index.commit()

        stale_ids = previous_ids - kept_ids
        if stale_ids:
            removed = index.remove_files(stale_ids)
            logging.info(f"Dropped {removed} index rows for files that vanished or changed since the last pass.")
        index.commit()
        logging.info(f"Scan complete. Processed {progress.files_scanned} files.")

        # --- Step 2: Classify ---
        # Row order is discovery order for indexed scans
        records.sort(key=lambda r: r.file_id)

        def persist_hash(rec: FileRecord):
            index.update_file_hash(rec.file_id, rec.full_hash, rec.full_hash)

        classifier = DuplicateClassifier(self.hasher, progress, on_hashed=persist_hash)
        groups = classifier.classify(records)

        # --- Step 3: Close session ---
        index.update_progress(scan_id, progress.files_scanned, len(groups))
        index.complete_scan(scan_id)
        index.commit()

        return ScanResult(
            groups=groups,
            files_scanned=progress.files_scanned,
            index_path=self.index_path,
            scan_id=scan_id,
        )


def find_duplicates(root: Union[str, Path],
                    recursive: bool = False,
                    exclude: Iterable[str] = (),
                    index_path: Optional[Union[str, Path]] = None,
                    resume: bool = False,
                    on_progress: Optional[ProgressCallback] = None,
                    max_workers: int = config.DEFAULT_WORKERS) -> ScanResult:
    """Convenience wrapper around DuplicateFinder for one-off scans."""
    finder = DuplicateFinder(index_path=index_path, max_workers=max_workers)
    return finder.find_duplicates(root, recursive, exclude, resume=resume, on_progress=on_progress)
