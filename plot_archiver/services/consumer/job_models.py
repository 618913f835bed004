"""
Result types for the archival workflow.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ProcessResult:
    """
    Outcome of processing one ArchivalJob.

    deferred: no destination was available, the same job went back in the queue.
    retry_scheduled: the attempt failed and a fresh job will be queued later.
    """

    success: bool
    plot_path: str
    destination: Optional[str] = None
    error_message: Optional[str] = None
    deferred: bool = False
    retry_scheduled: bool = False

    def __str__(self) -> str:
        if self.success:
            status = "SUCCESS"
        elif self.deferred:
            status = "DEFERRED"
        else:
            status = "FAILED"
        extras = []
        if self.destination:
            extras.append(f"dest={self.destination}")
        if self.retry_scheduled:
            extras.append("retry=true")

        extra_str = f" ({', '.join(extras)})" if extras else ""
        return f"ProcessResult({status}, {self.plot_path}{extra_str})"
