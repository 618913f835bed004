import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from plot_archiver.core.exceptions import SpaceClaimError
from plot_archiver.models import ArchivalJob
from plot_archiver.services.destination import Destination


class DestinationSelector:
    """
    Picks a destination for a job and reserves it.

    Selection, reservation and space claiming run as one critical section,
    so two workers can never hold the same destination.
    """

    def __init__(
        self,
        destinations: Sequence[Destination],
        max_concurrent_transfers: Optional[int] = None,
        max_concurrent_transfers_per_source: Optional[int] = None,
    ):
        self.destinations = list(destinations)
        self.max_concurrent_transfers = max_concurrent_transfers
        self.max_concurrent_transfers_per_source = max_concurrent_transfers_per_source
        self._lock = asyncio.Lock()

    def active_jobs(self) -> List[ArchivalJob]:
        return [d.active_job for d in self.destinations if d.active_job is not None]

    async def select_destination(self, job: ArchivalJob) -> Optional[Destination]:
        """
        Return a destination reserved for job (its active_job slot set), or
        None when nothing is available right now. If the destination only
        fits after eviction, space is claimed before returning; the caller
        must re-check the fit. A failed claim releases the slot and raises.
        """
        async with self._lock:
            destination, needs_eviction = await self._find_destination(job)
            if destination is None:
                return None

            destination.active_job = job

            if needs_eviction:
                logging.info(
                    f"No direct fit for {job.plot.name}, claiming space on {destination.location}"
                )
                try:
                    await destination.claim_space_for(job.plot)
                except OSError as e:
                    destination.active_job = None
                    raise SpaceClaimError(job.plot.name, destination.location, str(e)) from e
                except Exception:
                    destination.active_job = None
                    raise

            return destination

    async def _find_destination(self, job: ArchivalJob) -> Tuple[Optional[Destination], bool]:
        plot = job.plot
        active_jobs = self.active_jobs()

        if (
            self.max_concurrent_transfers is not None
            and len(active_jobs) >= self.max_concurrent_transfers
        ):
            logging.debug(
                f"Global transfer limit reached ({len(active_jobs)}/{self.max_concurrent_transfers}), "
                f"deferring {plot.name}"
            )
            return None, False

        same_source_count = sum(
            1 for active in active_jobs if active.source_location == job.source_location
        )
        if (
            self.max_concurrent_transfers_per_source is not None
            and same_source_count >= self.max_concurrent_transfers_per_source
        ):
            logging.debug(
                f"Source limit reached for {job.source_location} "
                f"({same_source_count}/{self.max_concurrent_transfers_per_source}), deferring {plot.name}"
            )
            return None, False

        idle_destinations = [d for d in self.destinations if d.is_idle]

        for destination in idle_destinations:
            if not destination.can_fit_directly(plot):
                continue
            # Cached value may be stale, confirm before committing
            await destination.refresh_free_space()
            if destination.can_fit_directly(plot):
                return destination, False

        for destination in idle_destinations:
            if destination.can_fit_with_eviction(plot):
                return destination, True

        return None, False

    def get_selector_info(self) -> dict:
        return {
            "destinations": [d.location for d in self.destinations],
            "active_jobs": len(self.active_jobs()),
            "max_concurrent_transfers": self.max_concurrent_transfers,
            "max_concurrent_transfers_per_source": self.max_concurrent_transfers_per_source,
        }
