"""
Pytest configuration og shared fixtures.
"""

import os
from datetime import datetime, timedelta
from typing import Dict, Optional

import pytest

from plot_archiver.config import Settings
from plot_archiver.core.events.event_bus import DomainEventBus
from plot_archiver.core.exceptions import CapacityProbeError
from plot_archiver.dependencies import reset_singletons
from plot_archiver.models import GIB, Plot


class FakeCapacityProbe:
    """
    Capacity probe with scripted free space per location.

    Files registered with track_file() add their size back to the free
    space of their location once they are deleted from disk.
    """

    def __init__(self, free_space: Optional[Dict[str, int]] = None):
        self.free_space: Dict[str, int] = dict(free_space or {})
        self.tracked_files: Dict[str, tuple] = {}
        self.failing_locations: set = set()
        self.calls = 0

    def track_file(self, location: str, path: str, size_bytes: int) -> None:
        self.tracked_files[path] = (location, size_bytes)

    async def get_free_space(self, location: str) -> int:
        self.calls += 1
        if location in self.failing_locations:
            raise CapacityProbeError(location, "simulated probe failure")
        freed = sum(
            size
            for path, (tracked_location, size) in self.tracked_files.items()
            if tracked_location == location and not os.path.exists(path)
        )
        return self.free_space.get(location, 0) + freed


class EventCollector:
    """Subscribes to event types and records everything published."""

    def __init__(self, event_bus: DomainEventBus, *event_types):
        self.events = []
        for event_type in event_types:
            event_bus.subscribe(event_type, self.handle)

    async def handle(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type):
        return [event for event in self.events if isinstance(event, event_type)]


def make_plot(
    path: str,
    size_gib: float = 1.0,
    created_at: Optional[datetime] = None,
    is_eviction_candidate: bool = False,
) -> Plot:
    return Plot(
        path=path,
        size_bytes=int(size_gib * GIB),
        created_at=created_at or datetime(2021, 6, 1),
        is_eviction_candidate=is_eviction_candidate,
    )


def write_eviction_candidates(directory, count: int, size_gib: float, probe: FakeCapacityProbe, location: str):
    """Create small files on disk standing in for large archived plots, oldest first."""
    plots = []
    base_time = datetime(2021, 1, 1)
    for index in range(count):
        path = directory / f"plot-k32-old-{index}.plot"
        path.write_bytes(b"x")
        plot = make_plot(
            str(path),
            size_gib=size_gib,
            created_at=base_time + timedelta(days=index),
            is_eviction_candidate=True,
        )
        probe.track_file(location, str(path), plot.size_bytes)
        plots.append(plot)
    return plots


@pytest.fixture
def settings(tmp_path):
    """Settings with zero delays and logs inside tmp_path."""
    return Settings(
        _env_file=None,
        source_directories=[str(tmp_path / "source")],
        destination_directories=[str(tmp_path / "dest1"), str(tmp_path / "dest2")],
        eviction_patterns=[r"plot-k32-old-.*\.plot$"],
        selection_retry_delay_seconds=0,
        failure_retry_delay_seconds=0,
        progress_update_interval_seconds=0.05,
        chunk_size_kb=4,
        log_file_path=str(tmp_path / "logs" / "plot_archiver.log"),
        show_progress=False,
    )


@pytest.fixture
def event_bus():
    return DomainEventBus()


@pytest.fixture
def capacity_probe():
    return FakeCapacityProbe()


@pytest.fixture(autouse=True)
def clean_singletons():
    """Automatically reset singletons before hver test."""
    reset_singletons()
    yield
    reset_singletons()
