import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional

from ..exceptions import FileReadError
from ..models import DuplicateGroup, FileRecord
from ..progress import ProgressReporter
from .hasher import FileHasher


class DuplicateClassifier:
    """
    Three-stage funnel: size -> quick hash -> full hash.

    Full-file hashing only happens in stage 3, and only for files whose size AND
    quick hash both collide with at least one other file.
    """

    def __init__(self,
                 hasher: Optional[FileHasher] = None,
                 progress: Optional[ProgressReporter] = None,
                 on_hashed: Optional[Callable[[FileRecord], None]] = None):
        """
        Args:
            on_hashed: Called with each record right after its full hash is known
                       (the engine uses it to persist the group assignment).
        """
        self.hasher = hasher or FileHasher()
        self.progress = progress or ProgressReporter()
        self.on_hashed = on_hashed

    def classify(self, records: Iterable[FileRecord]) -> List[DuplicateGroup]:
        # Remember discovery order for the tie-break
        ordered = list(records)
        position = {id(rec): i for i, rec in enumerate(ordered)}

        # --- Stage 1: Size ---
        size_buckets: Dict[int, List[FileRecord]] = defaultdict(list)
        for rec in ordered:
            size_buckets[rec.size].append(rec)

        groups: List[DuplicateGroup] = []

        for size, same_size in size_buckets.items():
            if len(same_size) < 2:
                continue

            # --- Stage 2: Quick hash ---
            quick_buckets: Dict[str, List[FileRecord]] = defaultdict(list)
            for rec in same_size:
                quick_buckets[rec.quick_hash].append(rec)

            for candidates in quick_buckets.values():
                if len(candidates) < 2:
                    continue

                # --- Stage 3: Full hash ---
                for full_hash, members in self._bucket_by_full_hash(candidates).items():
                    if len(members) < 2:
                        continue
                    groups.append(DuplicateGroup(full_hash=full_hash, files=members))
                    self.progress.groups_changed(len(groups))

        # Largest first; ties keep discovery order (sorted() is stable)
        groups.sort(key=lambda g: (-g.size, position[id(g.files[0])]))
        logging.info(f"Classification complete: {len(groups)} duplicate groups "
                     f"({self.progress.files_hashed} files fully hashed).")
        return groups

    def _bucket_by_full_hash(self, candidates: List[FileRecord]) -> Dict[str, List[FileRecord]]:
        buckets: Dict[str, List[FileRecord]] = defaultdict(list)
        for rec in candidates:
            if rec.full_hash is None:
                try:
                    rec.full_hash = self.hasher.full_digest(rec.path)
                except FileReadError as e:
                    # Dropped, never grouped with an unresolved hash
                    logging.error(f"Error hashing {rec.path}: {e}")
                    continue
                self.progress.file_hashed()
            if self.on_hashed:
                self.on_hashed(rec)
            buckets[rec.full_hash].append(rec)
        return buckets
