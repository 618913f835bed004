import asyncio
import logging
from typing import Callable, Optional, Set

from plot_archiver.config import Settings
from plot_archiver.models import Plot

from .domain_objects import FileSnapshot, ScanConfiguration
from .file_discovery_service import FileDiscoveryService
from .file_stability_tracker import FileStabilityTracker

PlotHandler = Callable[[Plot], object]


class PlotScannerService:
    """
    Polls the source directories and hands every finished plot to a handler
    (normally ArchiverService.enqueue).

    A path is reported once while it exists. Files present at start-up are
    reported too.
    """

    def __init__(
        self,
        config: ScanConfiguration,
        on_plot_ready: PlotHandler,
        stability_tracker: Optional[FileStabilityTracker] = None,
    ):
        self.config = config
        self._on_plot_ready = on_plot_ready
        self._discovery = FileDiscoveryService(config)
        self._stability_tracker = stability_tracker or FileStabilityTracker(config)
        self._reported: Set[str] = set()
        self._running = False
        self._scan_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: Settings, on_plot_ready: PlotHandler) -> "PlotScannerService":
        config = ScanConfiguration(
            source_directories=list(settings.source_directories),
            plot_file_pattern=settings.plot_file_pattern,
            polling_interval_seconds=settings.polling_interval_seconds,
            wait_for_write_stability=settings.wait_for_write_stability,
            file_stable_time_seconds=settings.file_stable_time_seconds,
            eviction_patterns=list(settings.eviction_patterns),
        )
        return cls(config, on_plot_ready)

    async def start_scanning(self) -> None:
        if self._running:
            logging.warning("Plot scanner already running")
            return

        self._running = True
        for directory in self.config.source_directories:
            logging.info(f"Watching {directory} for new plots")
        self._scan_task = asyncio.create_task(self._scan_loop(), name="plot-scanner")

    async def stop_scanning(self) -> None:
        self._running = False
        if self._scan_task:
            self._scan_task.cancel()
            try:
                await self._scan_task
            except asyncio.CancelledError:
                pass
            self._scan_task = None
        logging.info("Plot scanner stopped")

    def is_scanning(self) -> bool:
        return self._running

    async def _scan_loop(self) -> None:
        while self._running:
            try:
                await self.scan_once()
            except Exception as e:
                logging.error(f"Error in plot scan loop: {e}")
            await asyncio.sleep(self.config.polling_interval_seconds)

    async def scan_once(self) -> int:
        """One polling pass. Returns the number of plots reported."""
        snapshots = await self._discovery.discover_all_files()
        existing = set(snapshots)

        # Forget files that disappeared so a re-created file is reported again
        self._reported &= existing
        self._stability_tracker.cleanup_tracking_for_missing_files(existing)

        reported_count = 0
        for path, snapshot in snapshots.items():
            if path in self._reported:
                continue
            if self.config.wait_for_write_stability and not self._stability_tracker.check_file_stability(snapshot):
                continue
            if await self._report(snapshot):
                reported_count += 1

        return reported_count

    async def _report(self, snapshot: FileSnapshot) -> bool:
        try:
            plot = await Plot.from_path(snapshot.path, self.config.eviction_patterns)
        except FileNotFoundError:
            logging.debug(f"Plot vanished before it could be queued: {snapshot.path}")
            return False

        self._reported.add(snapshot.path)
        self._stability_tracker.remove_file_tracking(snapshot.path)
        logging.info(f"Enqueueing new plot: {snapshot.path}")

        result = self._on_plot_ready(plot)
        if asyncio.iscoroutine(result):
            await result
        return True
