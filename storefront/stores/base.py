# storefront/stores/base.py
import abc
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

DEFAULT_CATEGORIES = [
    ("electronics", "Electrónicos"),
    ("clothing", "Ropa"),
    ("books", "Libros"),
    ("home", "Hogar"),
    ("sports", "Deportes"),
]

PRODUCT_FIELDS = ("name", "shortDesc", "price", "category", "categoryId", "discount", "stock", "images")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def references_category(product: Dict[str, Any], category: Dict[str, Any]) -> bool:
    """True when a product points at the category, by id or by legacy label."""
    if product.get("categoryId") is not None and product["categoryId"] == category["id"]:
        return True
    return bool(product.get("category")) and product["category"] == category["label"]


class CatalogStore(abc.ABC):
    """Durable home of the catalog.

    Products and categories go in and out as plain dicts keyed the way the
    storefront client expects (``id``, ``name``, ``shortDesc``, ``price``,
    ``category``, ``categoryId``, ``discount``, ``stock``, ``images``,
    ``createdAt``). Every mutating call has persisted by the time it returns.
    """

    name = "abstract"
    # largest id the backend's integer column can hold; None means unbounded
    max_id: Optional[int] = None

    def __init__(self, seed_default_categories: bool = True):
        self.seed_default_categories = seed_default_categories
        self.logger = logging.getLogger(self.__class__.__module__)

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abc.abstractmethod
    async def list_products(self) -> List[Dict[str, Any]]:
        """All products, newest first."""

    @abc.abstractmethod
    async def list_categories(self) -> List[Dict[str, Any]]:
        """All categories in creation order."""

    @abc.abstractmethod
    async def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        ...

    @abc.abstractmethod
    async def insert_product(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abc.abstractmethod
    async def update_product(self, product_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Raises NotFound when the id is absent; never creates a row."""

    @abc.abstractmethod
    async def delete_product(self, product_id: int) -> None:
        ...

    @abc.abstractmethod
    async def upsert_category(self, name: str, label: str) -> Dict[str, Any]:
        """Insert or relabel by ``name``, atomically with the existence check."""

    @abc.abstractmethod
    async def delete_category(self, category_id: int) -> None:
        """Raises NotFound, or Conflict while any product references it."""

    def storable_id(self, item_id: int) -> bool:
        """Ids the backend cannot represent cannot exist in it."""
        return item_id >= 0 and (self.max_id is None or item_id <= self.max_id)

    async def product_ids(self) -> Set[int]:
        return {p["id"] for p in await self.list_products()}
