import asyncio
import logging
import os
import re
from datetime import datetime
from typing import Dict

from .domain_objects import FileSnapshot, ScanConfiguration


class FileDiscoveryService:
    """Lists plot files directly inside each source directory (no recursion)."""

    def __init__(self, config: ScanConfiguration):
        self.config = config
        self._plot_regex = re.compile(config.plot_file_pattern)

    def is_plot_file(self, file_name: str) -> bool:
        return self._plot_regex.search(file_name) is not None

    async def discover_all_files(self) -> Dict[str, FileSnapshot]:
        discovered: Dict[str, FileSnapshot] = {}
        for source_directory in self.config.source_directories:
            discovered.update(await asyncio.to_thread(self._scan_directory, source_directory))
        return discovered

    def _scan_directory(self, source_directory: str) -> Dict[str, FileSnapshot]:
        discovered: Dict[str, FileSnapshot] = {}

        if not os.path.isdir(source_directory):
            logging.debug(f"Source directory does not exist: {source_directory}")
            return discovered

        try:
            with os.scandir(source_directory) as entries:
                for entry in entries:
                    if not self.is_plot_file(entry.name):
                        continue
                    try:
                        if not entry.is_file():
                            continue
                        stat_result = entry.stat()
                    except OSError as e:
                        logging.debug(f"Cannot stat {entry.path}: {e}")
                        continue

                    path = os.path.abspath(entry.path)
                    discovered[path] = FileSnapshot(
                        path=path,
                        size=stat_result.st_size,
                        last_write_time=datetime.fromtimestamp(stat_result.st_mtime),
                    )
        except OSError as e:
            logging.error(f"Error scanning {source_directory}: {e}")

        return discovered
