"""Logging setup shared by the CLI and the API."""
import logging
import sys

from enforcement_scraper.config import config

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once."""
    root = logging.getLogger()
    root.setLevel((level or config.LOG_LEVEL).upper())

    if not any(getattr(h, "_enforcement_scraper", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._enforcement_scraper = True
        root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
