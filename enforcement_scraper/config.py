"""Configuration management from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
STATE_DB = DATA_DIR / "state.db"
PROGRESS_FILE = DATA_DIR / "progress.jsonl"
DEV_DIR = DATA_DIR / "dev"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)


class Config:
    """Application configuration."""

    # Sources
    HSE_BASE_URL: str = os.getenv("HSE_BASE_URL", "https://resources.hse.gov.uk")
    HSE_DATABASE: str = os.getenv("HSE_DATABASE", "convictions")
    EA_BASE_URL: str = os.getenv("EA_BASE_URL", "https://environment.data.gov.uk")

    # Scraper
    REQUESTS_PER_MINUTE: float = float(os.getenv("REQUESTS_PER_MINUTE", "10"))
    TIMEOUT: float = float(os.getenv("TIMEOUT", "30"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    RETRY_DELAY: float = float(os.getenv("RETRY_DELAY", "1.0"))
    BATCH_SIZE: int = int(os.getenv("BATCH_SIZE", "50"))
    MAX_PAGES: int = int(os.getenv("MAX_PAGES", "10"))
    MAX_PAGE_ERRORS: int = int(os.getenv("MAX_PAGE_ERRORS", "3"))
    CONSECUTIVE_EXISTING_THRESHOLD: int = int(os.getenv("CONSECUTIVE_EXISTING_THRESHOLD", "10"))

    # Storage
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "sqlite")
    SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE: str | None = os.getenv("SUPABASE_SERVICE_ROLE")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API Security
    API_KEY: str | None = os.getenv("API_KEY")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration."""
        errors = []
        if cls.STORE_BACKEND not in ("sqlite", "supabase"):
            errors.append(f"STORE_BACKEND must be 'sqlite' or 'supabase', got {cls.STORE_BACKEND!r}")
        if cls.STORE_BACKEND == "supabase":
            if not cls.SUPABASE_URL:
                errors.append("SUPABASE_URL is required")
            if not cls.SUPABASE_SERVICE_ROLE:
                errors.append("SUPABASE_SERVICE_ROLE is required")
        if cls.REQUESTS_PER_MINUTE <= 0:
            errors.append("REQUESTS_PER_MINUTE must be positive")
        if cls.MAX_RETRIES < 1:
            errors.append("MAX_RETRIES must be at least 1")
        if cls.MAX_PAGE_ERRORS < 1:
            errors.append("MAX_PAGE_ERRORS must be at least 1")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()
