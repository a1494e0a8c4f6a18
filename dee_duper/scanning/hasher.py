import hashlib
from pathlib import Path

from .. import config
from ..exceptions import FileReadError


class FileHasher:
    """
    Computes the two fingerprints the classifier works with.

    Strategy:
    1. Quick digest: SHA-256 of the first QUICK_HASH_BYTES only.
       Cheap enough to run on every file during the walk.
    2. Full digest: SHA-256 of the whole file, streamed in HASH_CHUNK_SIZE chunks.
       Only requested for files whose size and quick digest collide with another file.

    For files no larger than QUICK_HASH_BYTES both digests are identical.
    """

    def quick_digest(self, path: Path) -> str:
        h = hashlib.sha256()
        remaining = config.QUICK_HASH_BYTES
        try:
            with open(path, 'rb') as f:
                while remaining > 0:
                    chunk = f.read(min(config.HASH_CHUNK_SIZE, remaining))
                    if not chunk:
                        break
                    h.update(chunk)
                    remaining -= len(chunk)
        except OSError as e:
            raise FileReadError(path, e.strerror or str(e)) from e
        return h.hexdigest()

    def full_digest(self, path: Path) -> str:
        """Reads entire file. High I/O cost."""
        h = hashlib.sha256()
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(config.HASH_CHUNK_SIZE):
                    h.update(chunk)
        except OSError as e:
            raise FileReadError(path, e.strerror or str(e)) from e
        return h.hexdigest()
