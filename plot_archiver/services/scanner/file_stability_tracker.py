import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Tuple

from .domain_objects import FileSnapshot, ScanConfiguration


class FileStabilityTracker:
    """A file is stable once its size and mtime stayed unchanged for the configured time."""

    def __init__(self, config: ScanConfiguration, clock: Callable[[], datetime] = datetime.now):
        self.config = config
        self._clock = clock
        self._observations: Dict[str, Tuple[int, datetime, datetime]] = {}

    def remove_file_tracking(self, file_path: str) -> None:
        self._observations.pop(file_path, None)

    def cleanup_tracking_for_missing_files(self, existing_files: set[str]) -> None:
        for path in set(self._observations) - existing_files:
            self.remove_file_tracking(path)

    def check_file_stability(self, snapshot: FileSnapshot) -> bool:
        now = self._clock()
        previous = self._observations.get(snapshot.path)

        if previous is None or previous[:2] != (snapshot.size, snapshot.last_write_time):
            self._observations[snapshot.path] = (snapshot.size, snapshot.last_write_time, now)
            return False

        unchanged_since = previous[2]
        stable_duration = timedelta(seconds=self.config.file_stable_time_seconds)
        is_stable = now - unchanged_since >= stable_duration

        if is_stable:
            logging.debug(f"File is stable and ready: {snapshot.path}")

        return is_stable
