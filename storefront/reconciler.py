# storefront/reconciler.py
"""Batch sync of the whole catalog from the admin panel.

``save_all`` converges the stored products and categories to the list the
client sent: stored products missing from the list are deleted, listed
products are updated (known id) or inserted (no id or unknown id), then the
categories are upserted by name.

Every record is applied on its own. A record that fails validation or hits
a backend error is logged and reported in ``SaveAllResult.failed``; the
rest of the batch still goes through. There is no transaction across
records, so two concurrent batches may interleave.

Products inserted here always get a fresh server id. An id sent by the
client that does not match a stored product (e.g. a timestamp the admin
panel made up for a draft) is dropped.
"""
import asyncio
import logging
from typing import Any, Optional, Sequence

from .core import _make_category_fields, _make_product_dict, coerce_id, parse_catalog_product
from .errors import StoreError
from .models import ItemFailure, SaveAllResult
from .stores import CatalogStore

logger = logging.getLogger(__name__)


def _reason(exc: Exception) -> str:
    if isinstance(exc, StoreError) and exc.detail:
        return f"{exc.message}: {exc.detail}"
    if isinstance(exc, asyncio.TimeoutError):
        return "backend timed out"
    return str(exc) or exc.__class__.__name__


async def save_all(
    store: CatalogStore,
    products: Sequence[Any],
    categories: Sequence[Any],
    timeout: Optional[float] = None,
) -> SaveAllResult:
    result = SaveAllResult()

    async def call(coro):
        if timeout:
            return await asyncio.wait_for(coro, timeout)
        return await coro

    def fail(kind: str, op: str, ref: Any, exc: Exception) -> None:
        reason = _reason(exc)
        logger.warning("saveAll: %s %s %r failed: %s", op, kind, ref, reason)
        result.failed.append(ItemFailure(kind=kind, op=op, ref=ref, reason=reason))

    current_ids = await call(store.product_ids())
    received_ids = {coerce_id(raw.get("id")) for raw in products if isinstance(raw, dict)}
    received_ids.discard(None)

    # 1. deletions
    for product_id in sorted(current_ids - received_ids):
        try:
            await call(store.delete_product(product_id))
            result.deleted.append(product_id)
        except Exception as e:
            fail("product", "delete", product_id, e)

    # 2. inserts and updates
    for raw in products:
        ref = raw.get("id") if isinstance(raw, dict) else None
        product_id = coerce_id(ref)
        op = "update" if product_id in current_ids else "insert"
        try:
            if not isinstance(raw, dict):
                raise TypeError("product entry must be an object")
            fields = _make_product_dict(parse_catalog_product(raw))
            if op == "update":
                await call(store.update_product(product_id, fields))
                if product_id not in result.updated:
                    result.updated.append(product_id)
            else:
                created = await call(store.insert_product(fields))
                result.created.append(created["id"])
        except Exception as e:
            fail("product", op, ref, e)

    # 3. categories
    for raw in categories:
        name = raw.get("name") if isinstance(raw, dict) else None
        try:
            if not isinstance(raw, dict):
                raise TypeError("category entry must be an object")
            fields = _make_category_fields(raw.get("name"), raw.get("label"))
            category = await call(store.upsert_category(fields["name"], fields["label"]))
            result.categories.append(category["name"])
        except Exception as e:
            fail("category", "upsert", name, e)

    logger.info(
        "saveAll: %d created, %d updated, %d deleted, %d categories, %d failed",
        len(result.created), len(result.updated), len(result.deleted),
        len(result.categories), len(result.failed),
    )
    return result


def summarize(result: SaveAllResult) -> str:
    if result.ok:
        return "Datos guardados correctamente"
    return f"Datos guardados con {len(result.failed)} error(es)"

