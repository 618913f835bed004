import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from plot_archiver.core.exceptions import TransferError
from plot_archiver.models import ArchivalJob

TEMP_FILE_SUFFIX = ".temp"


def destination_path_for(job: ArchivalJob, destination_location: str) -> Path:
    return Path(destination_location) / job.plot.name


def temp_path_for(destination_path: Path) -> Path:
    return destination_path.with_name(destination_path.name + TEMP_FILE_SUFFIX)


class TransferExecutor:
    """
    Streams a plot into a temporary file at the destination, then renames it
    into place and removes the source.
    """

    def __init__(self, chunk_size_bytes: int = 2048 * 1024):
        self.chunk_size_bytes = chunk_size_bytes

    async def stream_to_temp(self, job: ArchivalJob, temp_path: Path) -> int:
        """
        Copy source bytes to temp_path, adding to job.progress.transferred_bytes
        as chunks are read. Returns bytes written.
        """
        progress = job.progress
        try:
            async with aiofiles.open(job.plot.path, "rb") as src, aiofiles.open(temp_path, "wb") as dst:
                while True:
                    chunk = await src.read(self.chunk_size_bytes)
                    if not chunk:
                        break
                    progress.transferred_bytes += len(chunk)
                    await dst.write(chunk)
        except OSError as e:
            raise TransferError(f"I/O error copying {job.plot.name} to {temp_path.parent}: {e}") from e

        return progress.transferred_bytes

    async def finalize(self, job: ArchivalJob, temp_path: Path, destination_path: Path) -> None:
        """Atomically move temp_path into place, then delete the source."""
        await aiofiles.os.replace(temp_path, destination_path)
        await aiofiles.os.remove(job.plot.path)

    async def cleanup_temp_file(self, temp_path: Path) -> bool:
        """Remove a leftover temp file. Returns True if one was removed."""
        try:
            if await aiofiles.os.path.exists(temp_path):
                await aiofiles.os.remove(temp_path)
                logging.debug(f"Removed temporary file {temp_path}")
                return True
        except OSError as e:
            logging.warning(f"Could not remove temporary file {temp_path}: {e}")
        return False

    def get_executor_info(self) -> dict:
        return {
            "chunk_size_bytes": self.chunk_size_bytes,
            "temp_file_suffix": TEMP_FILE_SUFFIX,
        }
