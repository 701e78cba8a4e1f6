# storefront/logic.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional, Sequence

from .checkout import format_checkout
from .config import Settings
from .core import (
    ProductIn, CategoryIn, PurchaseRequest, SaveAllRequest,
    _make_product_dict, _make_category_fields
)
from .errors import BackendUnavailable, NotFound, StoreError
from .images import ImageFile, ImageStore
from .reconciler import save_all, summarize
from .stores import CatalogStore

logger = logging.getLogger(__name__)

# Endpoint logic, kept apart from the FastAPI wiring in main.py.

async def _call(coro: Awaitable, settings: Settings, failure: str):
    """Await a backend call with the configured timeout.

    Storefront errors pass through; anything else the backend raises is
    reported as BackendUnavailable with the driver's message attached.
    """
    try:
        return await asyncio.wait_for(coro, settings.backend_timeout)
    except StoreError:
        raise
    except asyncio.TimeoutError:
        logger.error("%s: backend timed out after %ss", failure, settings.backend_timeout)
        raise BackendUnavailable(failure, detail="timeout")
    except Exception as e:
        logger.error(f"{failure}: {e}", exc_info=True)
        raise BackendUnavailable(failure, detail=str(e))

def _present_products(products: List[Dict[str, Any]], categories: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    labels = {c["id"]: c["label"] for c in categories}
    for p in products:
        if p.get("categoryId") in labels:
            p["category"] = labels[p["categoryId"]]
    return products

# Catalog
async def list_data_logic(store: CatalogStore, settings: Settings):
    async def fetch():
        return await store.list_products(), await store.list_categories()
    products, categories = await _call(fetch(), settings, "Error al obtener datos")
    return {
        "products": _present_products(products, categories),
        "categories": categories,
        "discounts": [],
        "config": {
            "whatsapp": {
                "number": settings.whatsapp_number,
                "message": settings.whatsapp_message,
            }
        },
    }

async def get_product_logic(store: CatalogStore, settings: Settings, product_id: int):
    async def fetch():
        return await store.get_product(product_id), await store.list_categories()
    product, categories = await _call(fetch(), settings, "Error obteniendo producto")
    if not product:
        raise NotFound("Producto no encontrado")
    return {"success": True, "product": _present_products([product], categories)[0]}

async def create_product_logic(store: CatalogStore, settings: Settings, payload: ProductIn):
    fields = _make_product_dict(payload)
    product = await _call(store.insert_product(fields), settings, "Error creando producto")
    logger.info("Product %s created", product["id"])
    return {"success": True, "product": product}

async def update_product_logic(store: CatalogStore, settings: Settings, product_id: int, payload: ProductIn):
    fields = _make_product_dict(payload)
    product = await _call(store.update_product(product_id, fields), settings, "Error actualizando producto")
    return {"success": True, "product": product}

async def delete_product_logic(store: CatalogStore, settings: Settings, product_id: int):
    await _call(store.delete_product(product_id), settings, "Error eliminando producto")
    logger.info("Product %s deleted", product_id)
    return {"success": True, "message": "Producto eliminado"}

# Categories
async def upsert_category_logic(store: CatalogStore, settings: Settings, payload: CategoryIn):
    fields = _make_category_fields(payload.name, payload.label)
    category = await _call(store.upsert_category(fields["name"], fields["label"]), settings, "Error creando categoría")
    return {"success": True, "category": category}

async def delete_category_logic(store: CatalogStore, settings: Settings, category_id: int):
    await _call(store.delete_category(category_id), settings, "Error eliminando categoría")
    logger.info("Category %s deleted", category_id)
    return {"success": True, "message": "Categoría eliminada"}

# Batch sync
async def save_all_logic(store: CatalogStore, settings: Settings, payload: SaveAllRequest):
    try:
        result = await save_all(store, payload.products, payload.categories, timeout=settings.backend_timeout)
    except StoreError:
        raise
    except Exception as e:
        # only the initial id listing can get here; per-item errors are collected
        logger.error(f"Error guardando datos: {e}", exc_info=True)
        raise BackendUnavailable("Error guardando datos", detail=str(e))
    return {"success": True, "message": summarize(result), "result": result.model_dump()}

# Images
async def upload_logic(images: ImageStore, files: Sequence[ImageFile]):
    urls = await images.ingest(files)
    return {"success": True, "urls": urls}

# Checkout
async def purchase_logic(store: CatalogStore, settings: Settings, payload: PurchaseRequest):
    intent = await _call(
        format_checkout(store, payload.cart, payload.customerData, settings.whatsapp_number, settings.currency),
        settings,
        "Error procesando compra",
    )
    return {
        "success": True,
        "whatsappUrl": intent.whatsapp_url,
        "total": intent.total,
        "items": [line.model_dump() for line in intent.items],
        "message": "Compra procesada. Serás redirigido a WhatsApp.",
    }

# Health
async def health_logic(store: CatalogStore, settings: Settings, images: Optional[ImageStore] = None):
    return {
        "success": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "message": "API funcionando correctamente",
        "environment": settings.environment,
        "database": store.name,
        "images": images.name if images else None,
    }
