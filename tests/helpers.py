# tests/helpers.py
import asyncio

from storefront.core import ProductIn, _make_product_dict
from storefront.stores import JsonFileStore, SQLiteStore

STORE_KINDS = ["json", "sqlite"]


def make_store(kind, tmp_path, seed=False):
    if kind == "json":
        return JsonFileStore(tmp_path / "store.json", seed_default_categories=seed)
    return SQLiteStore(tmp_path / "tienda.db", seed_default_categories=seed)


def run_with(store, fn):
    """Open the store, run ``await fn(store)`` in a fresh loop, close it."""
    async def scenario():
        await store.connect()
        try:
            return await fn(store)
        finally:
            await store.close()
    return asyncio.run(scenario())


def product_fields(name="Libro", price=10.0, **extra):
    return _make_product_dict(ProductIn(name=name, price=price, **extra))
