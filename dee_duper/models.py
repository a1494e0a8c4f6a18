from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_size(num_bytes: int) -> str:
    """Human readable size, e.g. 1048576 -> '1.00 MB'."""
    size = float(num_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(SIZE_UNITS) - 1:
        size /= 1024
        unit_index += 1
    return f"{size:.2f} {SIZE_UNITS[unit_index]}"


@dataclass
class FileRecord:
    """
    Represents a regular file found during a scan.
    """
    path: Path
    name: str
    size: int
    created: datetime
    modified: datetime
    quick_hash: str

    # Only filled in for files that survive the size + quick hash funnel
    full_hash: Optional[str] = None

    # Row id in the scan index (None for non-indexed scans)
    file_id: Optional[int] = None

    @property
    def formatted_size(self) -> str:
        return format_size(self.size)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.file_id,
            "path": str(self.path),
            "name": self.name,
            "size": self.size,
            "formatted_size": self.formatted_size,
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
            "quick_hash": self.quick_hash,
            "hash": self.full_hash,
        }


@dataclass
class DuplicateGroup:
    """Two or more files sharing one full content digest."""
    full_hash: str
    files: List[FileRecord] = field(default_factory=list)

    @property
    def size(self) -> int:
        # Members are byte-identical, so the first one speaks for the group
        return self.files[0].size if self.files else 0

    @property
    def wasted_bytes(self) -> int:
        return self.size * (len(self.files) - 1)

    @property
    def paths(self) -> List[Path]:
        return [f.path for f in self.files]

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self) -> Iterator[FileRecord]:
        return iter(self.files)

    def __getitem__(self, index: int) -> FileRecord:
        return self.files[index]


@dataclass
class ScanSession:
    """One scan's lifecycle record as stored in the scan index."""
    id: int
    base_directory: str
    start_time: datetime
    end_time: Optional[datetime] = None
    files_scanned: int = 0
    groups_found: int = 0

    @property
    def is_complete(self) -> bool:
        return self.end_time is not None

    @property
    def duration(self) -> Optional[timedelta]:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "base_directory": self.base_directory,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "files_scanned": self.files_scanned,
            "groups_found": self.groups_found,
        }


@dataclass
class ScanResult:
    """What the engine hands back to its caller."""
    groups: List[DuplicateGroup]
    files_scanned: int
    index_path: Optional[Path] = None
    scan_id: Optional[int] = None
