"""Metrics tracking for run progress."""
import time
import logging
from collections import defaultdict
from typing import Dict

from cartcheck.models import Status

logger = logging.getLogger(__name__)

# Counter key per record status
STATUS_KEYS = {
    Status.PRESENT: "present",
    Status.NOT_PRESENT: "not_present",
    Status.NO_PRODUCTS_FOUND: "not_found",
    Status.BLOCKED: "blocked",
    Status.MAINTENANCE: "maintenance",
    Status.FAILED: "failed",
    Status.INVALID_FORMAT: "invalid",
}


class Metrics:
    """Track lookup counts and calculate ETA."""

    def __init__(self, total: int, report_every: int = 25):
        self.total = total
        self.report_every = report_every
        self.start_time = time.time()
        self.counters: Dict[str, int] = defaultdict(int)
        self.last_report_time = time.time()
        self.last_report_count = 0

    def increment(self, key: str, amount: int = 1) -> None:
        """Increment a counter."""
        self.counters[key] = self.counters.get(key, 0) + amount

    def record(self, status: Status) -> None:
        """Count one written record; logs progress every ``report_every`` records."""
        self.increment("processed")
        self.increment(STATUS_KEYS[status])
        if self.report_every and self.counters["processed"] % self.report_every == 0:
            self.report()

    @property
    def processed(self) -> int:
        return self.counters.get("processed", 0)

    def get_rate(self) -> float:
        """Get current processing rate (items/second)."""
        elapsed = time.time() - self.start_time
        if elapsed > 0:
            return self.processed / elapsed
        return 0.0

    def get_eta(self) -> float:
        """Get estimated time remaining in seconds."""
        rate = self.get_rate()
        if rate <= 0:
            return 0.0
        return max(self.total - self.processed, 0) / rate

    def format_eta(self) -> str:
        """Format ETA as human-readable string."""
        eta_seconds = self.get_eta()
        if eta_seconds < 60:
            return f"{eta_seconds:.0f}s"
        elif eta_seconds < 3600:
            return f"{eta_seconds / 60:.1f}m"
        else:
            return f"{eta_seconds / 3600:.1f}h"

    def report(self) -> None:
        """Log current metrics."""
        now = time.time()
        processed = self.processed
        rate = self.get_rate()

        recent_elapsed = now - self.last_report_time
        recent_processed = processed - self.last_report_count
        recent_rate = recent_processed / recent_elapsed if recent_elapsed > 0 else 0

        logger.info(
            f"Progress: {processed}/{self.total} ({processed*100//self.total if self.total > 0 else 0}%) | "
            f"Rate: {rate:.2f}/s (recent: {recent_rate:.2f}/s) | "
            f"ETA: {self.format_eta()} | "
            f"Present: {self.counters.get('present', 0)} | "
            f"Not present: {self.counters.get('not_present', 0)} | "
            f"Not found: {self.counters.get('not_found', 0)} | "
            f"Blocked: {self.counters.get('blocked', 0)} | "
            f"Failed: {self.counters.get('failed', 0)}"
        )

        self.last_report_time = now
        self.last_report_count = processed

    def get_summary(self) -> Dict:
        """Get summary statistics."""
        summary = {"total": self.total, "processed": self.processed}
        for key in STATUS_KEYS.values():
            summary[key] = self.counters.get(key, 0)
        summary.update(
            {
                "rate": self.get_rate(),
                "eta_seconds": self.get_eta(),
                "elapsed_seconds": time.time() - self.start_time,
            }
        )
        return summary
