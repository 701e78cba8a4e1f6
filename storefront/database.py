# storefront/database.py
import logging

from .config import Settings
from .stores import CatalogStore, JsonFileStore, PostgresStore, SQLiteStore

logger = logging.getLogger(__name__)

# Picks the catalog backend once, at startup.

def build_store(settings: Settings) -> CatalogStore:
    if settings.store_backend == "postgres":
        store = PostgresStore(
            settings.database_url,
            use_ssl=settings.postgres_ssl(),
            seed_default_categories=settings.seed_default_categories,
            command_timeout=settings.backend_timeout,
        )
    elif settings.store_backend == "sqlite":
        store = SQLiteStore(settings.sqlite_path, seed_default_categories=settings.seed_default_categories)
    else:
        store = JsonFileStore(settings.data_file, seed_default_categories=settings.seed_default_categories)
    logger.info("Catalog backend: %s", store.name)
    return store
