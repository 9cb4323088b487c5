"""DEV mode storage: save each page's scraped items to data/dev/ for inspection."""
import logging
from pathlib import Path
from typing import Optional

import orjson

from enforcement_scraper.config import DEV_DIR
from enforcement_scraper.parse.models import ProcessedRecord, ScrapedSummaryRecord

logger = logging.getLogger(__name__)


class DevStorage:
    """Writes data/dev/<session_id>/page_<n>.json."""

    def __init__(self, session_id: str, dev_dir: Path = DEV_DIR):
        self.session_dir = dev_dir / session_id
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def save_page(
        self,
        page: int,
        scraped: list[ScrapedSummaryRecord],
        processed: Optional[list[ProcessedRecord]] = None,
        errors: Optional[list[str]] = None,
    ) -> Path:
        payload = {
            "page": page,
            "scraped": [r.model_dump(mode="json") for r in scraped],
            "processed": [r.model_dump(mode="json") for r in processed or []],
            "errors": errors or [],
        }
        path = self.session_dir / f"page_{page}.json"
        with open(path, "wb") as f:
            f.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
        logger.info(f"Saved page {page} to {path}")
        return path
