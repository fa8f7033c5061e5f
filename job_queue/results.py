"""
Job outcomes: tagged success/failure values returned by handlers.

Handlers report expected failures (bad recipient, filtered domain, exhausted
retries) as a failed JobResult instead of raising. Exceptions are reserved for
the unexpected and are caught at the dispatcher boundary.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass
class JobResult:
    """Outcome of processing one job."""
    is_success: bool
    message: str = ""
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, message: str = "Job completed successfully") -> JobResult:
        return cls(is_success=True, message=message)

    @classmethod
    def failure(cls, message: str, error: Optional[BaseException] = None) -> JobResult:
        return cls(is_success=False, message=message, error=error)

    def __bool__(self) -> bool:
        return self.is_success


class BatchOutcome(str, Enum):
    FULL_SUCCESS = "full_success"
    FULL_FAILURE = "full_failure"
    PARTIAL_SUCCESS = "partial_success"


@dataclass
class BatchResult:
    """Aggregate of per-item results for a bulk email send."""
    results: list[JobResult] = field(default_factory=list)
    batches: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.is_success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def outcome(self) -> BatchOutcome:
        if self.results and self.failed == 0:
            return BatchOutcome.FULL_SUCCESS
        if self.succeeded == 0:
            return BatchOutcome.FULL_FAILURE
        return BatchOutcome.PARTIAL_SUCCESS

    @property
    def is_success(self) -> bool:
        return self.outcome == BatchOutcome.FULL_SUCCESS

    @property
    def message(self) -> str:
        if not self.results:
            return "No email requests provided"
        outcome = self.outcome
        if outcome == BatchOutcome.FULL_SUCCESS:
            return f"All {self.succeeded} emails sent successfully"
        if outcome == BatchOutcome.FULL_FAILURE:
            return f"All {self.failed} emails failed to send"
        return f"Partial success: {self.succeeded} succeeded, {self.failed} failed"
