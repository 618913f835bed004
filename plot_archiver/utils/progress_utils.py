"""Progress and throughput calculations for plot transfers."""

from collections import deque
from typing import Deque


def calculate_transfer_percentage(transferred_bytes: int, total_bytes: int) -> float:
    if total_bytes <= 0:
        return 100.0  # Empty file is "complete"

    if transferred_bytes >= total_bytes:
        return 100.0

    if transferred_bytes <= 0:
        return 0.0

    return (transferred_bytes / total_bytes) * 100.0


class SpeedWindow:
    """
    Moving-average throughput over the last N progress samples.

    One sample (cumulative transferred bytes) is taken per tick. The speed is
    the mean of the deltas between consecutive samples, scaled from "per
    tick" to "per second". With fewer than two samples the speed is 0.
    """

    def __init__(self, max_samples: int = 15, sample_interval_seconds: float = 1.0):
        if max_samples < 2:
            raise ValueError("SpeedWindow needs room for at least 2 samples")
        self._samples: Deque[int] = deque(maxlen=max_samples)
        self._sample_interval_seconds = sample_interval_seconds

    def add_sample(self, transferred_bytes: int) -> None:
        self._samples.append(transferred_bytes)

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def speed_bytes_per_second(self) -> float:
        if len(self._samples) < 2:
            return 0.0

        samples = list(self._samples)
        deltas = [current - previous for previous, current in zip(samples, samples[1:])]
        average_per_sample = sum(deltas) / len(deltas)

        if self._sample_interval_seconds <= 0:
            return 0.0
        return average_per_sample / self._sample_interval_seconds

    def reset(self) -> None:
        self._samples.clear()


def format_bytes_human_readable(bytes_value: int) -> str:
    if bytes_value < 1024:
        return f"{bytes_value} B"
    elif bytes_value < 1024 ** 2:
        return f"{bytes_value / 1024:.1f} KiB"
    elif bytes_value < 1024 ** 3:
        return f"{bytes_value / 1024 ** 2:.1f} MiB"
    elif bytes_value < 1024 ** 4:
        return f"{bytes_value / 1024 ** 3:.2f} GiB"
    else:
        return f"{bytes_value / 1024 ** 4:.2f} TiB"


def format_transfer_rate_human_readable(rate_bytes_per_sec: float) -> str:
    return f"{format_bytes_human_readable(int(rate_bytes_per_sec))}/s"


def estimate_time_remaining(
    transferred_bytes: int, total_bytes: int, rate_bytes_per_sec: float
) -> float:
    if transferred_bytes >= total_bytes:
        return 0.0

    if rate_bytes_per_sec <= 0:
        return 0.0

    return (total_bytes - transferred_bytes) / rate_bytes_per_sec
