"""
Progress reporting for a running scan.

The engine reports every increment; throttling how often anything is shown
is the caller's business (the CLI hands the numbers to tqdm).
"""
from typing import Callable, Optional

ProgressCallback = Callable[[int, int, str], None]

PHASE_SCANNING = "scanning"
PHASE_HASHING = "hashing"


class ProgressReporter:
    def __init__(self, callback: Optional[ProgressCallback] = None, sink: Optional[Callable[[int, int], None]] = None):
        """
        Args:
            callback: Caller's hook, invoked as callback(files_scanned, groups_found, phase).
            sink: Persistence hook, invoked as sink(files_scanned, groups_found)
                  (the engine passes the scan index's update_progress here).
        """
        self.callback = callback
        self.sink = sink
        self.files_scanned = 0
        self.groups_found = 0
        self.files_hashed = 0

    def file_scanned(self):
        self.files_scanned += 1
        self._emit(PHASE_SCANNING)

    def file_hashed(self):
        self.files_hashed += 1
        self._emit(PHASE_HASHING)

    def groups_changed(self, groups_found: int):
        self.groups_found = groups_found
        self._emit(PHASE_HASHING)

    def _emit(self, phase: str):
        if self.sink:
            self.sink(self.files_scanned, self.groups_found)
        if self.callback:
            self.callback(self.files_scanned, self.groups_found, phase)
