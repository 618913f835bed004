import asyncio
from typing import Optional

from plot_archiver.core.events.archival_events import ArchivalProgressEvent
from plot_archiver.core.events.event_bus import DomainEventBus
from plot_archiver.models import ArchivalJob
from plot_archiver.services.periodic_task import PeriodicTask, SleepFunction
from plot_archiver.utils.progress_utils import SpeedWindow, calculate_transfer_percentage


class ProgressTracker:
    """
    Turns the job's running byte count into percentage and moving-average
    speed once per tick, and pushes the result to the event bus.
    """

    def __init__(
        self,
        job: ArchivalJob,
        destination_label: str,
        event_bus: Optional[DomainEventBus] = None,
        interval_seconds: float = 1.0,
        window_samples: int = 15,
        sleep: SleepFunction = asyncio.sleep,
    ):
        self.job = job
        self.destination_label = destination_label
        self._event_bus = event_bus
        self._speed_window = SpeedWindow(window_samples, interval_seconds)
        self._periodic = PeriodicTask(
            name=f"progress-{job.id[:8]}",
            interval_seconds=interval_seconds,
            callback=self.tick,
            sleep=sleep,
        )

    def start(self) -> None:
        self._periodic.start()

    async def stop(self) -> None:
        await self._periodic.stop()

    def sample(self) -> None:
        """Update job.progress from the current byte count."""
        progress = self.job.progress
        progress.percentage = calculate_transfer_percentage(
            progress.transferred_bytes, self.job.plot.size_bytes
        )
        self._speed_window.add_sample(progress.transferred_bytes)
        progress.speed_bytes_per_second = self._speed_window.speed_bytes_per_second

    async def tick(self) -> None:
        self.sample()
        await self.publish()

    async def publish(self) -> None:
        if not self._event_bus:
            return

        progress = self.job.progress
        await self._event_bus.publish(
            ArchivalProgressEvent(
                job_id=self.job.id,
                display_name=self.job.display_name,
                destination=self.destination_label,
                percentage=progress.percentage,
                speed_bytes_per_second=progress.speed_bytes_per_second,
                transferred_bytes=progress.transferred_bytes,
                total_bytes=self.job.plot.size_bytes,
            )
        )
