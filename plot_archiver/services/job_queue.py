import asyncio
import logging
from typing import Optional

from plot_archiver.models import ArchivalJob, Plot


class JobQueueService:
    """FIFO queue of pending archival jobs shared by all workers."""

    def __init__(self):
        self.job_queue: asyncio.Queue[ArchivalJob] = asyncio.Queue()

        self._total_jobs_added = 0
        self._total_jobs_handed_out = 0
        self._accepting = True

        logging.debug("JobQueueService initialiseret")

    def add_plot(self, plot: Plot) -> Optional[ArchivalJob]:
        """Wrap plot in a fresh job and queue it. Non-blocking."""
        return self.add_job(ArchivalJob(plot=plot))

    def add_job(self, job: ArchivalJob) -> Optional[ArchivalJob]:
        if not self._accepting:
            logging.warning(f"Queue is closed, dropping {job}")
            return None

        self.job_queue.put_nowait(job)
        self._total_jobs_added += 1

        logging.debug(f"Job tilføjet til queue: {job} (queue size {self.job_queue.qsize()})")
        return job

    async def get_next_job(self, timeout: float = 1.0) -> Optional[ArchivalJob]:
        """Next job, or None if nothing arrived within timeout."""
        try:
            job = await asyncio.wait_for(self.job_queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

        self._total_jobs_handed_out += 1
        return job

    def close(self) -> None:
        """Stop accepting new jobs. Already queued jobs stay queued."""
        self._accepting = False
        logging.info("Job queue closed for new jobs")

    @property
    def is_accepting(self) -> bool:
        return self._accepting

    def qsize(self) -> int:
        return self.job_queue.qsize()

    def get_queue_stats(self) -> dict:
        return {
            "queue_size": self.job_queue.qsize(),
            "total_jobs_added": self._total_jobs_added,
            "total_jobs_handed_out": self._total_jobs_handed_out,
            "accepting": self._accepting,
        }
