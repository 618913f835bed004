import asyncio
import logging
from typing import Awaitable, Callable, Optional

SleepFunction = Callable[[float], Awaitable[None]]


class PeriodicTask:
    """
    Runs an async callback every `interval_seconds` in a background task.

    Errors from the callback are logged and the loop keeps going. The sleep
    function is injectable so tests can drive time themselves.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable[None]],
        sleep: SleepFunction = asyncio.sleep,
        run_immediately: bool = False,
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._sleep = sleep
        self._run_immediately = run_immediately
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logging.warning(f"Periodic task {self.name} already running")
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)

    async def stop(self) -> None:
        if self._task is None:
            return

        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        if not self._run_immediately:
            await self._sleep(self.interval_seconds)

        while True:
            try:
                await self._callback()
            except Exception as e:
                logging.error(f"Error in periodic task {self.name}: {e}")

            await self._sleep(self.interval_seconds)
