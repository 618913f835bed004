from dataclasses import dataclass, field
from datetime import datetime
from typing import List


@dataclass
class ScanConfiguration:
    """Configuration object to eliminate long parameter lists."""

    source_directories: List[str]
    plot_file_pattern: str
    polling_interval_seconds: float = 1.0
    wait_for_write_stability: bool = True
    file_stable_time_seconds: float = 5.0
    eviction_patterns: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class FileSnapshot:
    """Size and modification time of a source file at one poll."""

    path: str
    size: int
    last_write_time: datetime
