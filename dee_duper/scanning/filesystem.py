import os
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set
from concurrent.futures import ThreadPoolExecutor

from wcmatch import glob

from .. import config
from ..exceptions import FileReadError, ScanError
from ..models import FileRecord
from .hasher import FileHasher

# '**' crosses directories; '*' also matches dotfiles; POSIX matching on every platform
GLOB_FLAGS = glob.GLOBSTAR | glob.DOTGLOB | glob.FORCEUNIX


class DiskScanner:
    def __init__(self, hasher: Optional[FileHasher] = None, cwd: Optional[Path] = None):
        self.hasher = hasher or FileHasher()
        # Exclude patterns are written relative to where the user ran the command
        self.cwd = Path(cwd) if cwd else Path.cwd()

    def walk(self,
             root: Path,
             recursive: bool = False,
             exclude_patterns: Iterable[str] = (),
             skip_paths: Optional[Set[Path]] = None,
             max_workers: int = 1,
             known_records: Optional[Dict[Path, FileRecord]] = None) -> Iterator[FileRecord]:
        """
        Generator that yields a FileRecord (quick hash only) for every regular file under root.

        Args:
            recursive: Descend into subdirectories. When False they are ignored entirely.
            exclude_patterns: Glob patterns; matching files and directories are never touched.
            skip_paths: Exact paths to leave out (e.g. the scan index itself).
            max_workers: Number of parallel workers for quick hashing (1 = sequential).
            known_records: Records from an earlier, interrupted pass. A file whose size and
                           mtime still match is handed back as-is instead of being re-hashed.

        Raises:
            ScanError: root is missing, not a directory, or cannot be listed.
        """
        root = self.check_root(root)

        patterns = [p for p in exclude_patterns if p]
        skip_paths = {Path(p).resolve() for p in (skip_paths or set())}
        paths = self._iter_files(root, recursive, patterns, skip_paths)
        known_records = known_records or {}

        if max_workers <= 1:
            yield from self._scan_sequential(paths, known_records)
        else:
            yield from self._scan_parallel(paths, max_workers, known_records)

    def check_root(self, root: Path) -> Path:
        """Resolves root and raises ScanError unless it is a directory that can be listed."""
        root = Path(root).resolve()
        if not root.exists():
            raise ScanError(root, "directory does not exist")
        if not root.is_dir():
            raise ScanError(root, "not a directory")
        self._list_directory(root)
        return root

    def _scan_sequential(self,
                         paths: Iterable[Path],
                         known_records: Dict[Path, FileRecord]) -> Iterator[FileRecord]:
        for path in paths:
            record = self._process_single_file(path, known_records)
            if record:
                yield record

    def _scan_parallel(self,
                       paths: Iterable[Path],
                       max_workers: int,
                       known_records: Dict[Path, FileRecord]) -> Iterator[FileRecord]:
        """
        Parallel quick hashing with directory-level batching.
        Each worker fills its own list; records are handed back to the caller's thread
        in submission order so traversal stays reproducible.
        """
        dir_batches = self._group_files_by_directory(paths)

        logging.info(f"Parallel scan: {len(dir_batches)} directories, {max_workers} workers")

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                (directory, executor.submit(self._process_directory_batch, files, known_records))
                for directory, files in dir_batches.items()
            ]
            for directory, future in futures:
                try:
                    records = future.result()
                except Exception as e:
                    logging.error(f"Failed to process directory {directory}: {e}")
                    continue
                yield from records

    def _group_files_by_directory(self, paths: Iterable[Path]) -> Dict[Path, List[Path]]:
        """Groups files by their parent directory for sequential processing."""
        dir_batches: Dict[Path, List[Path]] = {}
        for path in paths:
            dir_batches.setdefault(path.parent, []).append(path)
        return dir_batches

    def _process_directory_batch(self,
                                 files: List[Path],
                                 known_records: Dict[Path, FileRecord]) -> List[FileRecord]:
        """Processes all files in a directory sequentially (HDD-friendly)."""
        records = []
        for path in files:
            record = self._process_single_file(path, known_records)
            if record:
                records.append(record)
        return records

    def _process_single_file(self,
                             path: Path,
                             known_records: Optional[Dict[Path, FileRecord]] = None) -> Optional[FileRecord]:
        """Processes a single file and returns FileRecord or None on error."""
        try:
            return self._build_record(path, known_records or {})
        except FileReadError as e:
            logging.error(f"Error processing {path}: {e}")
            return None

    def _build_record(self, path: Path, known_records: Dict[Path, FileRecord]) -> FileRecord:
        try:
            st = path.lstat()
        except OSError as e:
            raise FileReadError(path, e.strerror or str(e)) from e

        known = known_records.get(path)
        if known is not None and known.size == st.st_size \
                and abs(known.modified.timestamp() - st.st_mtime) < 0.001:
            return known

        # st_birthtime only exists on some platforms; ctime is the closest fallback
        created_ts = getattr(st, "st_birthtime", st.st_ctime)

        return FileRecord(
            path=path,
            name=path.name,
            size=st.st_size,
            created=datetime.fromtimestamp(created_ts),
            modified=datetime.fromtimestamp(st.st_mtime),
            quick_hash=self.hasher.quick_digest(path),
        )

    def _iter_files(self,
                    root: Path,
                    recursive: bool,
                    patterns: List[str],
                    skip_paths: Set[Path]) -> Iterator[Path]:
        """Depth-first walker using os.scandir. Only regular files are yielded."""
        stack = [root]
        while stack:
            current = stack.pop()

            try:
                entries = self._list_directory(current)
            except ScanError as e:
                if current == root:
                    raise
                logging.warning(f"{e}; skipping subtree")
                continue

            dirs = []
            files = []
            for e in entries:
                path = Path(e.path)
                # Exclusion is decided on the name alone, before any stat or hash
                if self._is_excluded(path, patterns):
                    logging.debug(f"Excluded: {path}")
                    continue
                # Index files of earlier runs (and their SQLite side files) are never content
                if path in skip_paths or e.name.startswith(config.INDEX_FILE_PREFIX):
                    continue
                try:
                    if e.is_dir(follow_symlinks=False):
                        dirs.append(path)
                    elif e.is_file(follow_symlinks=False):
                        files.append(path)
                except OSError as err:
                    logging.error(f"Error processing {path}: {err}")

            if recursive:
                # Push dirs to stack (reversed so we process A before Z)
                for d in reversed(dirs):
                    stack.append(d)

            for f in files:
                yield f

    def _list_directory(self, directory: Path) -> List[os.DirEntry]:
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            raise ScanError(directory, e.strerror or str(e)) from e

        # Sort for stable traversal order
        entries.sort(key=lambda e: e.name)
        return entries

    def _is_excluded(self, path: Path, patterns: List[str]) -> bool:
        """
        A pattern matches the path relative to the working directory (POSIX separators)
        with glob rules: '*' stays within one path segment, '**' spans any number of
        directories (including none). Patterns without a '/' also match the bare entry
        name, so '*.log' works at any depth.
        """
        if not patterns:
            return False
        try:
            rel = Path(os.path.relpath(path, self.cwd)).as_posix()
        except ValueError:
            # Different drive on Windows; no relative form exists
            rel = path.as_posix()
        for pattern in patterns:
            if glob.globmatch(rel, pattern, flags=GLOB_FLAGS):
                return True
            if "/" not in pattern and glob.globmatch(path.name, pattern, flags=GLOB_FLAGS):
                return True
        return False
