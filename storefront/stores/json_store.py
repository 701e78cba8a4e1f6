# storefront/stores/json_store.py
import asyncio
import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from ..errors import Conflict, NotFound
from .base import CatalogStore, DEFAULT_CATEGORIES, PRODUCT_FIELDS, references_category, utc_now


def _empty_document() -> Dict[str, Any]:
    return {"products": [], "categories": [], "discounts": [], "config": {}}


class JsonFileStore(CatalogStore):
    """Whole catalog kept in one JSON document on disk.

    The document is cached in memory. Mutations run under a single lock,
    are applied to a copy, written to a temp file and swapped in with
    ``os.replace``; the cache only changes once the write succeeded.
    """

    name = "json"

    def __init__(self, path: Path, seed_default_categories: bool = True):
        super().__init__(seed_default_categories)
        self.path = Path(path)
        self._doc: Dict[str, Any] = _empty_document()
        self._lock: Optional[asyncio.Lock] = None

    async def connect(self) -> None:
        self._lock = asyncio.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists():
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
            doc = json.loads(raw) if raw.strip() else {}
            for key, value in _empty_document().items():
                doc.setdefault(key, value)
            self._doc = doc
        else:
            self._doc = _empty_document()

        if self.seed_default_categories and not self._doc["categories"]:
            async with self._mutate() as doc:
                for name, label in DEFAULT_CATEGORIES:
                    self._insert_category(doc, name, label)
            self.logger.info("Default categories seeded into %s", self.path)
        elif not self.path.exists():
            await self._write(self._doc)
        self.logger.info("JSON store opened at %s", self.path)

    # ---------------------------
    # Persistence helpers
    # ---------------------------
    async def _write(self, doc: Dict[str, Any]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(doc, ensure_ascii=False, indent=2))
        os.replace(tmp_path, self.path)

    def _mutate(self):
        return _Mutation(self)

    @staticmethod
    def _next_id(doc: Dict[str, Any], kind: str) -> int:
        sequences = doc["config"].setdefault("sequences", {})
        current = max([item["id"] for item in doc[kind]] + [sequences.get(kind, 0)])
        sequences[kind] = current + 1
        return current + 1

    def _insert_category(self, doc: Dict[str, Any], name: str, label: str) -> Dict[str, Any]:
        category = {"id": self._next_id(doc, "categories"), "name": name, "label": label, "createdAt": utc_now()}
        doc["categories"].append(category)
        return category

    @staticmethod
    def _find(items: List[Dict[str, Any]], item_id: int) -> Optional[Dict[str, Any]]:
        for item in items:
            if item["id"] == item_id:
                return item
        return None

    # ---------------------------
    # Reads
    # ---------------------------
    async def list_products(self) -> List[Dict[str, Any]]:
        products = sorted(self._doc["products"], key=lambda p: p["id"], reverse=True)
        return copy.deepcopy(products)

    async def list_categories(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(sorted(self._doc["categories"], key=lambda c: c["id"]))

    async def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        product = self._find(self._doc["products"], product_id)
        return copy.deepcopy(product) if product else None

    # ---------------------------
    # Writes
    # ---------------------------
    async def insert_product(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        async with self._mutate() as doc:
            product = {"id": self._next_id(doc, "products")}
            product.update({key: fields.get(key) for key in PRODUCT_FIELDS})
            product["createdAt"] = utc_now()
            doc["products"].append(product)
        return copy.deepcopy(product)

    async def update_product(self, product_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        async with self._mutate() as doc:
            product = self._find(doc["products"], product_id)
            if product is None:
                raise NotFound("Producto no encontrado")
            product.update({key: fields.get(key) for key in PRODUCT_FIELDS})
        return copy.deepcopy(product)

    async def delete_product(self, product_id: int) -> None:
        async with self._mutate() as doc:
            product = self._find(doc["products"], product_id)
            if product is None:
                raise NotFound("Producto no encontrado")
            doc["products"].remove(product)

    async def upsert_category(self, name: str, label: str) -> Dict[str, Any]:
        # The existence check and the write share the document lock.
        async with self._mutate() as doc:
            existing = next((c for c in doc["categories"] if c["name"] == name), None)
            if existing is not None:
                existing["label"] = label
                category = existing
            else:
                category = self._insert_category(doc, name, label)
        return copy.deepcopy(category)

    async def delete_category(self, category_id: int) -> None:
        async with self._mutate() as doc:
            category = self._find(doc["categories"], category_id)
            if category is None:
                raise NotFound("Categoría no encontrada")
            in_use = sum(1 for p in doc["products"] if references_category(p, category))
            if in_use:
                raise Conflict(
                    f"La categoría está en uso por {in_use} producto(s)",
                    detail={"products": in_use},
                )
            doc["categories"].remove(category)


class _Mutation:
    """``async with store._mutate() as doc`` - edit a copy, persist, then publish."""

    def __init__(self, store: JsonFileStore):
        self.store = store
        self.doc: Optional[Dict[str, Any]] = None

    async def __aenter__(self) -> Dict[str, Any]:
        if self.store._lock is None:
            self.store._lock = asyncio.Lock()
        await self.store._lock.acquire()
        self.doc = copy.deepcopy(self.store._doc)
        return self.doc

    async def __aexit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                await self.store._write(self.doc)
                self.store._doc = self.doc
        finally:
            self.store._lock.release()
        return False
