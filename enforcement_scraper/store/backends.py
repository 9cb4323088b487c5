"""Pick the backing store from configuration."""
from enforcement_scraper.config import config


def create_store(backend: str | None = None):
    backend = backend or config.STORE_BACKEND
    if backend == "supabase":
        from enforcement_scraper.store.supabase_store import SupabaseStore

        return SupabaseStore()
    if backend == "sqlite":
        from enforcement_scraper.store.state import EnforcementStore

        return EnforcementStore()
    raise ValueError(f"Unknown store backend: {backend!r}")
