import asyncio
import logging
from typing import Dict

from plot_archiver.models import ArchivalJob, Plot
from plot_archiver.services.job_queue import JobQueueService
from plot_archiver.services.periodic_task import SleepFunction


class RetryManager:
    """
    Re-queues failed plots as fresh jobs after a fixed delay.

    Retries are unbounded. At most one pending retry exists per plot path.
    """

    def __init__(
        self,
        job_queue: JobQueueService,
        delay_seconds: float = 1.0,
        sleep: SleepFunction = asyncio.sleep,
    ):
        self._job_queue = job_queue
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._retry_tasks: Dict[str, asyncio.Task] = {}

    def schedule_retry(self, plot: Plot) -> asyncio.Task:
        existing = self._retry_tasks.get(plot.path)
        if existing and not existing.done():
            logging.debug(f"Retry already pending for {plot.name}")
            return existing

        retry_task = asyncio.create_task(
            self._execute_retry_task(plot), name=f"retry-{plot.name}"
        )
        self._retry_tasks[plot.path] = retry_task
        logging.info(f"Scheduled retry for {plot.name} in {self.delay_seconds}s")
        return retry_task

    async def _execute_retry_task(self, plot: Plot) -> None:
        try:
            await self._sleep(self.delay_seconds)
            job = self._job_queue.add_job(ArchivalJob(plot=plot))
            if job:
                logging.debug(f"Retry executed for {plot.name} as {job}")
        finally:
            self._retry_tasks.pop(plot.path, None)

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._retry_tasks.values() if not task.done())

    async def wait_for_pending(self) -> None:
        """Wait until every currently scheduled retry has fired."""
        tasks = list(self._retry_tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def cancel_all_retries(self) -> int:
        tasks = list(self._retry_tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._retry_tasks.clear()

        if tasks:
            logging.info(f"Cancelled {len(tasks)} pending retries")
        return len(tasks)
