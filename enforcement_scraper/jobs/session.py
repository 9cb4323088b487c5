"""Scrape session lifecycle and per-run configuration."""
import logging
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from enforcement_scraper.config import config
from enforcement_scraper.parse.models import Agency, DataType, utcnow

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = {SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.CANCELLED}

ALLOWED_TRANSITIONS = {
    SessionStatus.PENDING: {SessionStatus.RUNNING, SessionStatus.FAILED, SessionStatus.CANCELLED},
    SessionStatus.RUNNING: TERMINAL_STATUSES,
}


class InvalidTransition(Exception):
    def __init__(self, session_id: str, current: SessionStatus, target: SessionStatus):
        self.session_id = session_id
        self.current = current
        self.target = target
        super().__init__(f"Session {session_id}: cannot go from {current.value} to {target.value}")


class RunConfig(BaseModel):
    """Everything one session needs to know about what and how to scrape."""

    agency: Agency = Agency.HSE
    data_type: DataType = DataType.CASE
    start_page: int = Field(default=1, ge=1)
    max_pages: int = Field(default=10, ge=1)
    # EA searches
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    action_types: list[str] = Field(default_factory=lambda: ["court_case"])
    # HSE
    database: str = "convictions"
    country: str = "England"

    batch_size: int = Field(default=50, ge=1)
    requests_per_minute: float = Field(default=10, gt=0)
    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
    timeout: float = Field(default=30.0, gt=0)
    max_page_errors: int = Field(default=3, ge=1)
    stop_on_existing: bool = True
    consecutive_existing_threshold: int = Field(default=10, ge=0)
    fetch_details: bool = True
    dev_mode: bool = False

    @classmethod
    def from_config(cls, **overrides: Any) -> "RunConfig":
        """Defaults from the environment, with explicit overrides (None values ignored)."""
        values = {
            "database": config.HSE_DATABASE,
            "max_pages": config.MAX_PAGES,
            "batch_size": config.BATCH_SIZE,
            "requests_per_minute": config.REQUESTS_PER_MINUTE,
            "max_retries": config.MAX_RETRIES,
            "retry_delay": config.RETRY_DELAY,
            "timeout": config.TIMEOUT,
            "max_page_errors": config.MAX_PAGE_ERRORS,
            "consecutive_existing_threshold": config.CONSECUTIVE_EXISTING_THRESHOLD,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def end_page(self) -> int:
        return self.start_page + self.max_pages - 1


class ScrapeSession(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    agency: Agency
    data_type: DataType = DataType.CASE
    status: SessionStatus = SessionStatus.PENDING
    run_config: RunConfig = Field(default_factory=RunConfig)

    pages_scraped: int = 0
    total_found: int = 0
    total_created: int = 0
    total_existing: int = 0
    total_failed: int = 0
    total_errors: int = 0
    current_page: Optional[int] = None
    stop_reason: Optional[str] = None
    error: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def for_config(cls, run_config: RunConfig) -> "ScrapeSession":
        return cls(agency=run_config.agency, data_type=run_config.data_type, run_config=run_config)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, target: SessionStatus) -> None:
        if target not in ALLOWED_TRANSITIONS.get(self.status, set()):
            raise InvalidTransition(self.id, self.status, target)
        logger.info(f"Session {self.id}: {self.status.value} -> {target.value}")
        self.status = target
        now = utcnow()
        self.updated_at = now
        if target == SessionStatus.RUNNING:
            self.started_at = now
        elif target in TERMINAL_STATUSES:
            self.finished_at = now

    def start(self) -> None:
        self.transition(SessionStatus.RUNNING)

    def complete(self, reason: Optional[str] = None) -> None:
        self.transition(SessionStatus.COMPLETED)
        self.stop_reason = reason

    def fail(self, error: str) -> None:
        self.transition(SessionStatus.FAILED)
        self.error = error

    def cancel(self, reason: str = "cancelled") -> None:
        self.transition(SessionStatus.CANCELLED)
        self.stop_reason = reason

    def summary(self) -> dict[str, Any]:
        end = self.finished_at or utcnow()
        duration = (end - self.started_at).total_seconds() if self.started_at else 0.0
        success_rate = (self.total_created / self.total_found * 100) if self.total_found else 0.0
        return {
            "session_id": self.id,
            "agency": self.agency.value,
            "data_type": self.data_type.value,
            "status": self.status.value,
            "pages_scraped": self.pages_scraped,
            "total_found": self.total_found,
            "total_created": self.total_created,
            "total_existing": self.total_existing,
            "total_failed": self.total_failed,
            "total_errors": self.total_errors,
            "stop_reason": self.stop_reason,
            "error": self.error,
            "duration_seconds": round(duration, 2),
            "success_rate": round(success_rate, 2),
        }
