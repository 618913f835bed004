import os
import re
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_settings_file() -> str:
    """Settings file path, overridable via PLOT_ARCHIVER_SETTINGS_FILE."""
    return os.environ.get("PLOT_ARCHIVER_SETTINGS_FILE", "settings.env")


class Settings(BaseSettings):
    # Stier
    source_directories: List[str] = Field(default_factory=list)
    destination_directories: List[str] = Field(default_factory=list)

    # Navngivning
    plot_file_pattern: str = r"^plot-k[0-9]+.+\.plot$"
    eviction_patterns: List[str] = Field(default_factory=list)

    # Concurrency ceilings (None = unlimited)
    max_concurrent_transfers: Optional[int] = Field(default=None, ge=1)
    max_concurrent_transfers_per_source: Optional[int] = Field(default=None, ge=1)

    # Source watching
    wait_for_write_stability: bool = True
    file_stable_time_seconds: int = 5
    polling_interval_seconds: int = 1

    # Timing
    selection_retry_delay_seconds: float = 1.0
    failure_retry_delay_seconds: float = 1.0
    free_space_refresh_interval_seconds: int = 3600  # 1 hour
    progress_update_interval_seconds: float = 1.0
    speed_window_samples: int = Field(default=15, ge=2)

    # Transfer
    chunk_size_kb: int = 2048
    capacity_probe_timeout_seconds: float = 10.0

    # Logging konfiguration
    log_level: str = "INFO"
    log_file_path: str = "logs/plot_archiver.log"
    log_retention_days: int = 30

    show_progress: bool = True

    model_config = SettingsConfigDict(env_file=get_settings_file(), extra="ignore")

    @field_validator("eviction_patterns", "plot_file_pattern")
    @classmethod
    def _patterns_must_compile(cls, value):
        patterns = value if isinstance(value, list) else [value]
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid regular expression '{pattern}': {e}")
        return value

    @property
    def log_directory(self) -> Path:
        """Returnerer log directory som Path objekt"""
        return Path(self.log_file_path).parent

    @property
    def chunk_size_bytes(self) -> int:
        return self.chunk_size_kb * 1024
