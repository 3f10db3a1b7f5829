"""Run control: stop conditions and limits."""
import time
import logging
from typing import Optional
from dataclasses import dataclass, field

from cartcheck.models import Status

logger = logging.getLogger(__name__)


@dataclass
class RunControl:
    """Decides when a run stops taking new items."""

    stop_after_minutes: Optional[float] = None
    max_errors: Optional[int] = None
    max_consecutive_errors: Optional[int] = None
    max_blocked: Optional[int] = None

    # Internal state
    start_time: float = field(default_factory=time.time)
    error_count: int = 0
    consecutive_errors: int = 0
    blocked_count: int = 0
    stop_reason: Optional[str] = None

    def should_stop(self) -> tuple[bool, Optional[str]]:
        """Check if run should stop. Returns (should_stop, reason)."""
        if self.stop_reason:
            return True, self.stop_reason

        elapsed_minutes = (time.time() - self.start_time) / 60
        if self.stop_after_minutes and elapsed_minutes >= self.stop_after_minutes:
            return True, f"Reached stop_after_minutes={self.stop_after_minutes}"

        if self.max_errors and self.error_count >= self.max_errors:
            return True, f"Reached max_errors={self.max_errors}"

        if self.max_consecutive_errors and self.consecutive_errors >= self.max_consecutive_errors:
            return True, f"Reached max_consecutive_errors={self.max_consecutive_errors}"

        if self.max_blocked and self.blocked_count >= self.max_blocked:
            return True, f"Reached max_blocked={self.max_blocked}"

        return False, None

    def request_stop(self, reason: str) -> None:
        """Stop after the items currently in flight."""
        if not self.stop_reason:
            logger.warning(f"Stop requested: {reason}")
            self.stop_reason = reason

    def record(self, status: Status) -> None:
        """Update counters from a written record."""
        if status == Status.FAILED:
            self.error_count += 1
            self.consecutive_errors += 1
            return
        if status == Status.BLOCKED:
            self.blocked_count += 1
        self.consecutive_errors = 0

    def get_summary(self) -> dict:
        """Get summary statistics."""
        elapsed_minutes = (time.time() - self.start_time) / 60
        return {
            "elapsed_minutes": round(elapsed_minutes, 2),
            "error_count": self.error_count,
            "consecutive_errors": self.consecutive_errors,
            "blocked_count": self.blocked_count,
            "stop_reason": self.stop_reason,
        }
