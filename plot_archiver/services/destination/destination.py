import logging
from typing import Iterable, List, Optional, Pattern, Union

import aiofiles.os

from ...core.events.archival_events import PlotEvictedEvent
from ...core.events.event_bus import DomainEventBus
from ...core.exceptions import CapacityProbeError
from ...models import GIB, ArchivalJob, Plot
from ..capacity_probe import CapacityProbe
from .destination_catalog import build_eviction_catalog


class Destination:
    """
    One archive location: its free-space estimate, the job currently
    writing to it (at most one), and the files that may be deleted to
    make room, oldest first.

    active_job and eviction_catalog are only mutated by the worker that
    holds this destination (see DestinationSelector).
    """

    def __init__(
        self,
        location: str,
        capacity_probe: CapacityProbe,
        event_bus: Optional[DomainEventBus] = None,
        eviction_catalog: Optional[List[Plot]] = None,
        free_space_bytes: int = 0,
    ):
        self.location = location
        self.free_space_bytes = free_space_bytes
        self.active_job: Optional[ArchivalJob] = None
        self.eviction_catalog: List[Plot] = sorted(
            eviction_catalog or [], key=lambda plot: plot.created_at
        )
        self._capacity_probe = capacity_probe
        self._event_bus = event_bus

    @classmethod
    async def create(
        cls,
        location: str,
        capacity_probe: CapacityProbe,
        eviction_patterns: Iterable[Union[str, Pattern[str]]] = (),
        event_bus: Optional[DomainEventBus] = None,
    ) -> "Destination":
        destination = cls(location, capacity_probe, event_bus=event_bus)
        await destination.initialize(eviction_patterns)
        return destination

    async def initialize(self, eviction_patterns: Iterable[Union[str, Pattern[str]]] = ()) -> None:
        await self.refresh_free_space()
        self.eviction_catalog = await build_eviction_catalog(self.location, eviction_patterns)

        logging.info(
            f"Destination {self.location}: {self.free_space_bytes / GIB:.2f}GiB free, "
            f"{len(self.eviction_catalog)} eviction candidates "
            f"({self.claimable_space_bytes / GIB:.2f}GiB claimable)"
        )

    @property
    def claimable_space_bytes(self) -> int:
        return sum(plot.size_bytes for plot in self.eviction_catalog)

    @property
    def is_idle(self) -> bool:
        return self.active_job is None

    async def refresh_free_space(self) -> None:
        """Re-query free space. On failure the previous value is kept."""
        try:
            self.free_space_bytes = await self._capacity_probe.get_free_space(self.location)
        except CapacityProbeError as e:
            logging.error(f"Destination ({self.location}): failed to update free space: {e.reason}")

    def can_fit_directly(self, plot: Plot) -> bool:
        return plot.size_bytes < self.free_space_bytes

    def can_fit_with_eviction(self, plot: Plot) -> bool:
        return plot.size_bytes < self.free_space_bytes + self.claimable_space_bytes

    async def claim_space_for(self, plot: Plot) -> List[Plot]:
        """
        Delete eviction candidates, oldest first, until plot fits directly or
        the catalog is empty. Best effort: callers must re-check the fit.

        Returns the evicted plots. A failed delete drops the entry from the
        catalog and propagates.
        """
        evicted: List[Plot] = []

        while not self.can_fit_directly(plot) and self.eviction_catalog:
            candidate = self.eviction_catalog.pop(0)
            try:
                await aiofiles.os.remove(candidate.path)
            except FileNotFoundError:
                logging.warning(
                    f"Eviction candidate already gone: {candidate.path} ({self.location})"
                )
            else:
                evicted.append(candidate)
                logging.info(
                    f"Evicted {candidate.name} ({candidate.size_gib:.2f}GiB) from {self.location} "
                    f"to make room for {plot.name}"
                )
                if self._event_bus:
                    await self._event_bus.publish(
                        PlotEvictedEvent(
                            evicted_path=candidate.path,
                            size_bytes=candidate.size_bytes,
                            destination=self.location,
                            incoming_plot_path=plot.path,
                        )
                    )

            await self.refresh_free_space()

        return evicted

    def __repr__(self) -> str:
        active = self.active_job.plot.name if self.active_job else None
        return (
            f"Destination(location={self.location!r}, "
            f"free={self.free_space_bytes / GIB:.2f}GiB, "
            f"claimable={self.claimable_space_bytes / GIB:.2f}GiB, active={active})"
        )
