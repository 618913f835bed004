import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Pattern, Union
from uuid import uuid4

import aiofiles.os
from pydantic import BaseModel, ConfigDict, Field

GIB = 1024 ** 3
MIB = 1024 ** 2

DISPLAY_NAME_MAX_STEM_LENGTH = 37


def matches_any_pattern(path: str, patterns: Iterable[Union[str, Pattern[str]]]) -> bool:
    """True if at least one pattern matches somewhere in the path."""
    return any(re.search(pattern, path) for pattern in patterns)


def creation_time_from_stat(stat_result: os.stat_result) -> datetime:
    # st_birthtime only exists on macOS/BSD (and Windows on 3.12+)
    timestamp = getattr(stat_result, "st_birthtime", None) or stat_result.st_mtime
    return datetime.fromtimestamp(timestamp)


class Plot(BaseModel):
    """
    Immutable description of a file to archive, or of an archived file
    sitting at a destination.

    Created when a source file is reported ready, or when a destination
    catalogs its existing files. The record never changes afterwards; only
    the underlying file may be deleted.
    """

    path: str = Field(..., description="Absolute path to the file")
    size_bytes: int = Field(..., ge=0, description="File size in bytes")
    created_at: datetime = Field(..., description="File creation time, eviction order tie-break")
    is_eviction_candidate: bool = Field(
        default=False,
        description="Whether the file may be deleted to reclaim space",
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    async def from_path(
        cls, path: Union[str, Path], eviction_patterns: Iterable[Union[str, Pattern[str]]] = ()
    ) -> "Plot":
        path = os.path.abspath(str(path))
        stat_result = await aiofiles.os.stat(path)
        return cls(
            path=path,
            size_bytes=stat_result.st_size,
            created_at=creation_time_from_stat(stat_result),
            is_eviction_candidate=matches_any_pattern(path, eviction_patterns),
        )

    @property
    def source_location(self) -> str:
        """Parent directory, used for per-source concurrency limits."""
        return os.path.dirname(self.path)

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def size_gib(self) -> float:
        return self.size_bytes / GIB

    @property
    def display_name(self) -> str:
        """File name with long stems shortened to first 34 chars + '..' + last 3."""
        stem, dot, extension = self.name.rpartition(".")
        if not dot:
            stem, extension = self.name, ""
        if len(stem) > DISPLAY_NAME_MAX_STEM_LENGTH:
            stem = f"{stem[:34]}..{stem[-3:]}"
        return f"{stem}.{extension}" if dot else stem

    def __str__(self) -> str:
        return f"Plot({self.name}, {self.size_gib:.2f} GiB)"


@dataclass
class TransferProgress:
    """Live transfer state owned by an ArchivalJob. percentage is 0-100."""

    percentage: float = 0.0
    transferred_bytes: int = 0
    speed_bytes_per_second: float = 0.0
    started_at: Optional[datetime] = None

    @property
    def speed_mib_per_second(self) -> float:
        return self.speed_bytes_per_second / MIB


@dataclass
class ArchivalJob:
    """
    One archival attempt for a Plot.

    A failed attempt is never reused: the retry wraps the same Plot in a new
    ArchivalJob, so progress always starts from zero.
    """

    plot: Plot
    progress: TransferProgress = field(default_factory=TransferProgress)
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def display_name(self) -> str:
        return self.plot.display_name

    @property
    def source_location(self) -> str:
        return self.plot.source_location

    def __str__(self) -> str:
        return (
            f"ArchivalJob(id={self.id[:8]}, "
            f"plot={self.plot.name}, "
            f"size={self.plot.size_bytes:,}, "
            f"progress={self.progress.percentage:.1f}%)"
        )
