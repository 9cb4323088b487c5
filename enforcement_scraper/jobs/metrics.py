"""Per-session counters and time-left estimate for the progress log line."""
import logging
import time
from collections import defaultdict
from typing import Dict

logger = logging.getLogger(__name__)


class Metrics:
    """Page and record counters for one session.

    The estimate assumes every remaining page takes as long as the average
    page so far, rate limiting included.
    """

    def __init__(self, total_pages: int, clock=time.monotonic):
        self.total_pages = total_pages
        self._clock = clock
        self.started = clock()
        self.counters: Dict[str, int] = defaultdict(int)

    def increment(self, key: str, amount: int = 1) -> None:
        self.counters[key] += amount

    @property
    def elapsed(self) -> float:
        return self._clock() - self.started

    @property
    def pages_done(self) -> int:
        return self.counters["pages"] + self.counters["page_errors"]

    def seconds_per_page(self) -> float:
        if not self.pages_done:
            return 0.0
        return self.elapsed / self.pages_done

    def seconds_left(self) -> float:
        return max(self.total_pages - self.pages_done, 0) * self.seconds_per_page()

    @staticmethod
    def format_duration(seconds: float) -> str:
        """125 -> '2m05s'."""
        minutes, secs = divmod(int(seconds), 60)
        hours, minutes = divmod(minutes, 60)
        if hours:
            return f"{hours}h{minutes:02d}m"
        if minutes:
            return f"{minutes}m{secs:02d}s"
        return f"{secs}s"

    def report(self) -> None:
        logger.info(
            f"Page {self.pages_done}/{self.total_pages} | "
            f"found={self.counters['found']} created={self.counters['created']} "
            f"existing={self.counters['existing']} failed={self.counters['failed']} | "
            f"{self.seconds_per_page():.1f}s/page, ~{self.format_duration(self.seconds_left())} left"
        )

    def get_summary(self) -> Dict:
        return {
            "total_pages": self.total_pages,
            "pages": self.counters["pages"],
            "page_errors": self.counters["page_errors"],
            "found": self.counters["found"],
            "created": self.counters["created"],
            "existing": self.counters["existing"],
            "failed": self.counters["failed"],
            "seconds_per_page": round(self.seconds_per_page(), 2),
            "elapsed_seconds": round(self.elapsed, 2),
        }
