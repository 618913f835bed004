"""
Events published by the archiver during the life of an archival job.
"""

from dataclasses import dataclass
from typing import Optional

from plot_archiver.core.events.domain_event import DomainEvent


@dataclass(frozen=True)
class ArchivalStartedEvent(DomainEvent):
    """A job claimed a destination and is about to stream bytes."""

    job_id: str
    plot_path: str
    display_name: str
    destination: str
    total_bytes: int


@dataclass(frozen=True)
class ArchivalProgressEvent(DomainEvent):
    """Published once per progress tick while a transfer is active."""

    job_id: str
    display_name: str
    destination: str
    percentage: float
    speed_bytes_per_second: float
    transferred_bytes: int
    total_bytes: int


@dataclass(frozen=True)
class ArchivalEndedEvent(DomainEvent):
    """The job left its destination, successfully or not."""

    job_id: str
    plot_path: str
    destination: str
    success: bool
    error_message: Optional[str] = None


@dataclass(frozen=True)
class PlotEvictedEvent(DomainEvent):
    """An eviction candidate was deleted to make room for an incoming plot."""

    evicted_path: str
    size_bytes: int
    destination: str
    incoming_plot_path: str
