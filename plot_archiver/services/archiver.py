import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from plot_archiver.config import Settings
from plot_archiver.core.events.event_bus import DomainEventBus
from plot_archiver.models import ArchivalJob, Plot
from plot_archiver.services.capacity_probe import CapacityProbe
from plot_archiver.services.consumer.destination_selector import DestinationSelector
from plot_archiver.services.consumer.job_processor import JobProcessor
from plot_archiver.services.consumer.transfer_executor import TransferExecutor
from plot_archiver.services.destination import Destination
from plot_archiver.services.job_queue import JobQueueService
from plot_archiver.services.periodic_task import PeriodicTask, SleepFunction
from plot_archiver.services.retry_manager import RetryManager


class ArchiverService:
    """
    Bounded-concurrency archiving scheduler.

    One worker per destination (minimum 1) pulls jobs from a shared FIFO
    queue and runs each to completion, deferral or retry before taking the
    next one.
    """

    def __init__(
        self,
        settings: Settings,
        destinations: Sequence[Destination],
        event_bus: Optional[DomainEventBus] = None,
        sleep: SleepFunction = asyncio.sleep,
    ):
        self.settings = settings
        self.destinations: List[Destination] = list(destinations)
        self.event_bus = event_bus

        self.job_queue = JobQueueService()
        self.retry_manager = RetryManager(
            self.job_queue, delay_seconds=settings.failure_retry_delay_seconds, sleep=sleep
        )
        self.selector = DestinationSelector(
            self.destinations,
            max_concurrent_transfers=settings.max_concurrent_transfers,
            max_concurrent_transfers_per_source=settings.max_concurrent_transfers_per_source,
        )
        self.job_processor = JobProcessor(
            settings=settings,
            job_queue=self.job_queue,
            selector=self.selector,
            transfer_executor=TransferExecutor(settings.chunk_size_bytes),
            retry_manager=self.retry_manager,
            event_bus=event_bus,
            sleep=sleep,
        )
        self._free_space_refresh = PeriodicTask(
            name="free-space-refresh",
            interval_seconds=settings.free_space_refresh_interval_seconds,
            callback=self.refresh_free_space,
            sleep=sleep,
        )

        # Worker management
        self._workers: List[asyncio.Task] = []
        self._running = False
        self._worker_count = max(1, len(self.destinations))

        self._total_jobs_processed = 0
        self._start_time: Optional[datetime] = None

        logging.info(f"ArchiverService initialized with {self._worker_count} workers")

    @classmethod
    async def create(
        cls,
        settings: Settings,
        capacity_probe: Optional[CapacityProbe] = None,
        event_bus: Optional[DomainEventBus] = None,
    ) -> "ArchiverService":
        """Build the service, reading free space and eviction catalogs for every destination."""
        capacity_probe = capacity_probe or CapacityProbe(settings.capacity_probe_timeout_seconds)
        destinations = await asyncio.gather(
            *(
                Destination.create(
                    location,
                    capacity_probe,
                    eviction_patterns=settings.eviction_patterns,
                    event_bus=event_bus,
                )
                for location in settings.destination_directories
            )
        )
        return cls(settings, destinations, event_bus=event_bus)

    @property
    def worker_count(self) -> int:
        return self._worker_count

    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logging.warning("Archiver workers are already running")
            return

        self._running = True
        self._start_time = datetime.now()

        for i in range(self._worker_count):
            worker_task = asyncio.create_task(
                self._worker_loop(f"worker-{i + 1}"), name=f"archive-worker-{i + 1}"
            )
            self._workers.append(worker_task)

        self._free_space_refresh.start()
        logging.info(f"Started {len(self._workers)} archive workers")

    def enqueue(self, plot: Plot) -> Optional[ArchivalJob]:
        """Queue plot for archiving. Non-blocking; ignored after shutdown."""
        job = self.job_queue.add_plot(plot)
        if job:
            logging.info(f"Enqueued {plot.name} ({plot.size_gib:.2f}GiB)")
        return job

    async def shutdown(self, abort_in_flight: bool = False) -> None:
        """
        Stop taking new work. Workers exit once their current job is done;
        with abort_in_flight they are cancelled immediately and partial
        temp files are removed.
        """
        self.job_queue.close()
        await self._free_space_refresh.stop()

        if self._running:
            self._running = False
            logging.info("Stopping archive workers...")

            if abort_in_flight:
                for worker in self._workers:
                    if not worker.done():
                        worker.cancel()

            if self._workers:
                await asyncio.gather(*self._workers, return_exceptions=True)

            self._workers.clear()
            logging.info("All archive workers stopped")

        # Jobs that fail while the workers drain schedule retries, so cancel last
        await self.retry_manager.cancel_all_retries()

    async def refresh_free_space(self) -> None:
        await asyncio.gather(*(d.refresh_free_space() for d in self.destinations))

    async def _worker_loop(self, worker_id: str) -> None:
        try:
            while self._running:
                job = await self.job_queue.get_next_job()
                if job is None:
                    continue

                if not self._running:
                    # Picked up during shutdown, leave it unprocessed
                    break

                try:
                    result = await self.job_processor.process_job(job)
                    logging.debug(f"{worker_id}: {result}")
                except Exception as e:
                    logging.error(f"Worker {worker_id} error on {job}: {e}", exc_info=True)
                self._total_jobs_processed += 1

        except asyncio.CancelledError:
            logging.debug(f"Worker {worker_id} cancelled")
            raise

    def get_archiver_statistics(self) -> dict:
        return {
            "is_running": self._running,
            "worker_count": self._worker_count,
            "total_jobs_processed": self._total_jobs_processed,
            "started_at": self._start_time.isoformat() if self._start_time else None,
            "queue": self.job_queue.get_queue_stats(),
            "pending_retries": self.retry_manager.pending_count,
            "destinations": [
                {
                    "location": d.location,
                    "free_space_bytes": d.free_space_bytes,
                    "claimable_space_bytes": d.claimable_space_bytes,
                    "eviction_candidates": len(d.eviction_catalog),
                    "active_plot": d.active_job.plot.name if d.active_job else None,
                }
                for d in self.destinations
            ],
        }
