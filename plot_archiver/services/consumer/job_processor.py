"""
Job Processor - runs one archival job from destination selection to cleanup.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from plot_archiver.config import Settings
from plot_archiver.core.events.archival_events import ArchivalEndedEvent, ArchivalStartedEvent
from plot_archiver.core.events.event_bus import DomainEventBus
from plot_archiver.core.exceptions import InsufficientSpaceError, SpaceClaimError
from plot_archiver.models import ArchivalJob, Plot
from plot_archiver.services.consumer.destination_selector import DestinationSelector
from plot_archiver.services.consumer.job_models import ProcessResult
from plot_archiver.services.consumer.progress_tracker import ProgressTracker
from plot_archiver.services.consumer.transfer_executor import (
    TransferExecutor,
    destination_path_for,
    temp_path_for,
)
from plot_archiver.services.destination import Destination
from plot_archiver.services.job_queue import JobQueueService
from plot_archiver.services.periodic_task import SleepFunction
from plot_archiver.services.retry_manager import RetryManager
from plot_archiver.utils.progress_utils import (
    format_bytes_human_readable,
    format_transfer_rate_human_readable,
)


class JobProcessor:
    """Processes a single ArchivalJob: select, transfer, finalize or retry."""

    def __init__(
        self,
        settings: Settings,
        job_queue: JobQueueService,
        selector: DestinationSelector,
        transfer_executor: TransferExecutor,
        retry_manager: RetryManager,
        event_bus: Optional[DomainEventBus] = None,
        sleep: SleepFunction = asyncio.sleep,
    ):
        self.settings = settings
        self.job_queue = job_queue
        self.selector = selector
        self.transfer_executor = transfer_executor
        self.retry_manager = retry_manager
        self.event_bus = event_bus
        self._sleep = sleep

    async def process_job(self, job: ArchivalJob) -> ProcessResult:
        plot = job.plot

        try:
            destination = await self.selector.select_destination(job)
        except SpaceClaimError as e:
            # Slot already released by the selector
            logging.error(f"Failed to claim space on {e.location} for {plot.name}: {e.reason}")
            return self._retry_after_selection_failure(plot, e)
        except Exception as e:
            logging.error(f"Destination selection failed for {plot.name}: {e}", exc_info=True)
            return self._retry_after_selection_failure(plot, e)

        if destination is None:
            await self._sleep(self.settings.selection_retry_delay_seconds)
            self.job_queue.add_job(job)
            return ProcessResult(success=False, plot_path=plot.path, deferred=True)

        return await self._archive(job, destination)

    def _retry_after_selection_failure(self, plot: Plot, error: Exception) -> ProcessResult:
        self.retry_manager.schedule_retry(plot)
        return ProcessResult(
            success=False,
            plot_path=plot.path,
            error_message=str(error),
            retry_scheduled=True,
        )

    async def _archive(self, job: ArchivalJob, destination: Destination) -> ProcessResult:
        plot = job.plot
        destination_path = destination_path_for(job, destination.location)
        temp_path = temp_path_for(destination_path)

        logging.info(f"Archiving {plot.name} to {destination.location} ..")
        tracker = ProgressTracker(
            job,
            destination_label=destination.location,
            event_bus=self.event_bus,
            interval_seconds=self.settings.progress_update_interval_seconds,
            window_samples=self.settings.speed_window_samples,
            sleep=self._sleep,
        )
        await self._publish(
            ArchivalStartedEvent(
                job_id=job.id,
                plot_path=plot.path,
                display_name=job.display_name,
                destination=destination.location,
                total_bytes=plot.size_bytes,
            )
        )

        success = False
        error_message = None
        try:
            if not destination.can_fit_directly(plot):
                raise InsufficientSpaceError(
                    plot.name, destination.location, destination.free_space_bytes, plot.size_bytes
                )

            job.progress.started_at = datetime.now()
            tracker.start()
            await self.transfer_executor.stream_to_temp(job, temp_path)
            await self.transfer_executor.finalize(job, temp_path, destination_path)
            tracker.sample()
            success = True
            elapsed = (datetime.now() - job.progress.started_at).total_seconds()
            logging.info(
                f"Finished archiving {plot.name} to {destination.location} "
                f"({format_bytes_human_readable(plot.size_bytes)} at "
                f"{format_transfer_rate_human_readable(plot.size_bytes / max(elapsed, 0.001))})"
            )

        except asyncio.CancelledError:
            await self.transfer_executor.cleanup_temp_file(temp_path)
            error_message = "cancelled"
            raise

        except Exception as e:
            error_message = str(e)
            await self.transfer_executor.cleanup_temp_file(temp_path)
            logging.error(f"Failed to archive {plot.name} to {destination.location}: {e}")
            self.retry_manager.schedule_retry(plot)

        finally:
            await tracker.stop()
            await self._publish(
                ArchivalEndedEvent(
                    job_id=job.id,
                    plot_path=plot.path,
                    destination=destination.location,
                    success=success,
                    error_message=error_message,
                )
            )
            await destination.refresh_free_space()
            destination.active_job = None

        return ProcessResult(
            success=success,
            plot_path=plot.path,
            destination=destination.location,
            error_message=error_message,
            retry_scheduled=not success,
        )

    async def _publish(self, event) -> None:
        if self.event_bus:
            await self.event_bus.publish(event)

    def get_processor_info(self) -> dict:
        return {
            "selector": self.selector.get_selector_info(),
            "executor": self.transfer_executor.get_executor_info(),
            "pending_retries": self.retry_manager.pending_count,
            "selection_retry_delay_seconds": self.settings.selection_retry_delay_seconds,
        }
