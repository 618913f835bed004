import asyncio
import logging
import shutil

from ..core.exceptions import CapacityProbeError


class CapacityProbe:
    """Reads free space for a storage location without blocking the event loop."""

    def __init__(self, timeout_seconds: float = 10.0):
        self._timeout_seconds = timeout_seconds

    async def get_free_space(self, location: str) -> int:
        """Free bytes at location. Raises CapacityProbeError on any failure."""
        try:
            def _sync_disk_usage() -> int:
                return shutil.disk_usage(location).free

            free_bytes = await asyncio.wait_for(
                asyncio.to_thread(_sync_disk_usage),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise CapacityProbeError(location, f"timed out after {self._timeout_seconds}s")
        except OSError as e:
            raise CapacityProbeError(location, str(e)) from e

        logging.debug(f"Free space for {location}: {free_bytes / (1024 ** 3):.1f}GiB")
        return free_bytes
