"""
Terminal progress rows for active archival jobs, driven by archiver events.
"""

import logging
from typing import Dict, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)

from plot_archiver.core.events.archival_events import (
    ArchivalEndedEvent,
    ArchivalProgressEvent,
    ArchivalStartedEvent,
)
from plot_archiver.core.events.event_bus import DomainEventBus
from plot_archiver.models import MIB


def _row_description(display_name: str, destination: str) -> str:
    return f"{display_name} -> {destination}"


class ProgressView:
    """One rich progress row per job: name -> destination | bar | % | ETA | MiB/s."""

    def __init__(self, event_bus: DomainEventBus, console: Optional[Console] = None):
        self._event_bus = event_bus
        self._progress = Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("ETA"),
            TimeRemainingColumn(),
            TextColumn("{task.fields[speed]} MiB/s"),
            console=console,
            transient=True,
            refresh_per_second=1,
        )
        self._rows: Dict[str, TaskID] = {}

    def start(self) -> None:
        self._event_bus.subscribe(ArchivalStartedEvent, self.handle_started)
        self._event_bus.subscribe(ArchivalProgressEvent, self.handle_progress)
        self._event_bus.subscribe(ArchivalEndedEvent, self.handle_ended)
        self._progress.start()
        logging.debug("ProgressView started")

    def stop(self) -> None:
        self._event_bus.unsubscribe(ArchivalStartedEvent, self.handle_started)
        self._event_bus.unsubscribe(ArchivalProgressEvent, self.handle_progress)
        self._event_bus.unsubscribe(ArchivalEndedEvent, self.handle_ended)
        self._progress.stop()

    @property
    def active_rows(self) -> int:
        return len(self._rows)

    async def handle_started(self, event: ArchivalStartedEvent) -> None:
        self._rows[event.job_id] = self._progress.add_task(
            _row_description(event.display_name, event.destination),
            total=100,
            speed="0.00",
        )

    async def handle_progress(self, event: ArchivalProgressEvent) -> None:
        task_id = self._rows.get(event.job_id)
        if task_id is None:
            return
        self._progress.update(
            task_id,
            completed=event.percentage,
            speed=f"{event.speed_bytes_per_second / MIB:.2f}",
        )

    async def handle_ended(self, event: ArchivalEndedEvent) -> None:
        task_id = self._rows.pop(event.job_id, None)
        if task_id is not None:
            self._progress.remove_task(task_id)
