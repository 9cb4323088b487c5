"""Run control: cancellation and stop conditions."""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class RunControl:
    """Controls when a session stops.

    cancel() may be called from any thread; the coordinator checks it
    between pages.
    """

    max_page_errors: int = 3
    stop_on_existing: bool = True
    consecutive_existing_threshold: int = 10

    # Internal state
    start_time: float = field(default_factory=time.time)
    page_errors: int = 0
    consecutive_existing: int = 0
    cancel_reason: Optional[str] = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def from_config(cls, run_config) -> "RunControl":
        return cls(
            max_page_errors=run_config.max_page_errors,
            stop_on_existing=run_config.stop_on_existing,
            consecutive_existing_threshold=run_config.consecutive_existing_threshold,
        )

    def cancel(self, reason: str = "cancelled by request") -> None:
        if not self._cancelled.is_set():
            self.cancel_reason = reason
            self._cancelled.set()
            logger.info(f"Cancellation requested: {reason}")

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def record_page_error(self) -> None:
        self.page_errors += 1

    @property
    def page_errors_exhausted(self) -> bool:
        return self.page_errors >= self.max_page_errors

    def record_page(self, created: int, existing: int) -> None:
        """A page with any new record resets the run of existing ones."""
        if created:
            self.consecutive_existing = 0
        else:
            self.consecutive_existing += existing

    def should_stop(self, found: int, created: int, existing: int) -> tuple[bool, Optional[str]]:
        """Check if the run can end early. Returns (should_stop, reason)."""
        if not self.stop_on_existing:
            return False, None

        if found and existing == found:
            return True, f"All {found} records on page already exist"

        if self.consecutive_existing_threshold and self.consecutive_existing >= self.consecutive_existing_threshold:
            return True, f"Reached {self.consecutive_existing} consecutive existing records"

        return False, None

    def get_summary(self) -> dict:
        elapsed_minutes = (time.time() - self.start_time) / 60
        return {
            "elapsed_minutes": round(elapsed_minutes, 2),
            "page_errors": self.page_errors,
            "consecutive_existing": self.consecutive_existing,
            "cancelled": self.cancelled,
            "cancel_reason": self.cancel_reason,
        }
