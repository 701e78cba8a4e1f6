from .base import CatalogStore, DEFAULT_CATEGORIES
from .json_store import JsonFileStore
from .sqlite_store import SQLiteStore
from .postgres_store import PostgresStore

__all__ = ["CatalogStore", "DEFAULT_CATEGORIES", "JsonFileStore", "SQLiteStore", "PostgresStore"]
