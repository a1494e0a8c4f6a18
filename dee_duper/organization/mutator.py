import os
import logging
import threading
from contextlib import nullcontext
from pathlib import Path
from typing import Optional, Union

from ..database.ops import ScanIndex
from ..exceptions import MutationConflictError


class FileMutator:
    """
    Deletes and renames files on disk, then mirrors the change into the scan index.

    The filesystem always goes first: the index is only touched once the disk
    operation succeeded. A crash between the two leaves a stale row (accepted risk).
    """

    def __init__(self, index: ScanIndex, lock: Optional[threading.Lock] = None):
        self.index = index
        self.lock = lock

    def delete(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        with self._locked():
            if not path.is_file():
                raise MutationConflictError(path, f"{path} no longer exists")

            try:
                path.unlink()
            except FileNotFoundError as e:
                # Vanished between the check and the unlink
                raise MutationConflictError(path, f"{path} no longer exists") from e

            self.index.delete_file(path)
            self.index.commit()

        logging.info(f"Deleted {path}")
        return path

    def rename(self, old_path: Union[str, Path], new_name: str) -> Path:
        """Renames within the same directory. Returns the new path."""
        old_path = Path(old_path)
        self._validate_name(new_name)
        new_path = old_path.parent / new_name

        with self._locked():
            if not old_path.is_file():
                raise MutationConflictError(old_path, f"{old_path} no longer exists")
            if new_path.exists() or new_path.is_symlink():
                raise MutationConflictError(new_path, "A file with that name already exists")

            try:
                os.rename(old_path, new_path)
            except FileNotFoundError as e:
                raise MutationConflictError(old_path, f"{old_path} no longer exists") from e

            self.index.update_file_path(old_path, new_path)
            self.index.commit()

        logging.info(f"Renamed {old_path} -> {new_path}")
        return new_path

    @staticmethod
    def _validate_name(new_name: str):
        seps = {os.sep, "/"}
        if os.altsep:
            seps.add(os.altsep)
        if not new_name or new_name in (".", "..") or any(s in new_name for s in seps):
            raise ValueError("Invalid new filename")

    def _locked(self):
        return self.lock if self.lock is not None else nullcontext()
