# storefront/stores/sqlite_store.py
import asyncio
import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import Conflict, NotFound
from .base import CatalogStore, DEFAULT_CATEGORIES

SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    shortDesc TEXT,
    price REAL,
    category TEXT,
    category_id INTEGER,
    discount INTEGER DEFAULT 0,
    stock INTEGER DEFAULT 0,
    images TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    label TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""


def _iso(value: Optional[str]) -> Optional[str]:
    # CURRENT_TIMESTAMP is UTC text without a zone
    if not value:
        return value
    try:
        stamp = datetime.fromisoformat(value)
    except ValueError:
        return value
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp.isoformat()


def _product_row(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "shortDesc": row["shortDesc"],
        "price": row["price"],
        "category": row["category"],
        "categoryId": row["category_id"],
        "discount": row["discount"],
        "stock": row["stock"],
        "images": json.loads(row["images"]) if row["images"] else [],
        "createdAt": _iso(row["created_at"]),
    }


def _category_row(row: sqlite3.Row) -> Dict[str, Any]:
    return {"id": row["id"], "name": row["name"], "label": row["label"], "createdAt": _iso(row["created_at"])}


def _product_params(fields: Dict[str, Any]) -> tuple:
    return (
        fields["name"],
        fields.get("shortDesc"),
        fields["price"],
        fields.get("category"),
        fields.get("categoryId"),
        fields.get("discount") or 0,
        fields.get("stock") or 0,
        json.dumps(fields.get("images") or []),
    )


class SQLiteStore(CatalogStore):
    """Single-file SQLite catalog.

    One connection shared behind a thread lock; every call runs in a worker
    thread so the event loop never blocks on disk.
    """

    name = "sqlite"
    max_id = 2 ** 63 - 1

    def __init__(self, path: Path, seed_default_categories: bool = True):
        super().__init__(seed_default_categories)
        self.path = Path(path)
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    async def connect(self) -> None:
        await asyncio.to_thread(self._connect)
        self.logger.info("Conectado a SQLite en %s", self.path)

    def _connect(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        with self._lock, self.conn:
            self.conn.executescript(SCHEMA)
            count = self.conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0]
            if self.seed_default_categories and count == 0:
                self.conn.executemany("INSERT INTO categories (name, label) VALUES (?, ?)", DEFAULT_CATEGORIES)
                self.logger.info("Default categories inserted")

    async def close(self) -> None:
        if self.conn is not None:
            conn, self.conn = self.conn, None
            await asyncio.to_thread(conn.close)

    async def _run(self, fn, *args):
        def call():
            with self._lock:
                return fn(*args)
        return await asyncio.to_thread(call)

    # ---------------------------
    # Reads
    # ---------------------------
    async def list_products(self) -> List[Dict[str, Any]]:
        def query():
            rows = self.conn.execute("SELECT * FROM products ORDER BY id DESC").fetchall()
            return [_product_row(r) for r in rows]
        return await self._run(query)

    async def list_categories(self) -> List[Dict[str, Any]]:
        def query():
            rows = self.conn.execute("SELECT * FROM categories ORDER BY id ASC").fetchall()
            return [_category_row(r) for r in rows]
        return await self._run(query)

    async def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        if not self.storable_id(product_id):
            return None
        def query():
            row = self.conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
            return _product_row(row) if row else None
        return await self._run(query)

    async def product_ids(self):
        def query():
            return {r[0] for r in self.conn.execute("SELECT id FROM products")}
        return await self._run(query)

    # ---------------------------
    # Writes
    # ---------------------------
    async def insert_product(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        def write():
            with self.conn:
                cur = self.conn.execute(
                    """
                    INSERT INTO products (name, shortDesc, price, category, category_id, discount, stock, images)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    _product_params(fields),
                )
            row = self.conn.execute("SELECT * FROM products WHERE id = ?", (cur.lastrowid,)).fetchone()
            return _product_row(row)
        return await self._run(write)

    async def update_product(self, product_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        if not self.storable_id(product_id):
            raise NotFound("Producto no encontrado")
        def write():
            with self.conn:
                cur = self.conn.execute(
                    """
                    UPDATE products
                    SET name = ?, shortDesc = ?, price = ?, category = ?, category_id = ?,
                        discount = ?, stock = ?, images = ?
                    WHERE id = ?
                    """,
                    _product_params(fields) + (product_id,),
                )
            if cur.rowcount == 0:
                raise NotFound("Producto no encontrado")
            row = self.conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
            return _product_row(row)
        return await self._run(write)

    async def delete_product(self, product_id: int) -> None:
        if not self.storable_id(product_id):
            raise NotFound("Producto no encontrado")
        def write():
            with self.conn:
                cur = self.conn.execute("DELETE FROM products WHERE id = ?", (product_id,))
            if cur.rowcount == 0:
                raise NotFound("Producto no encontrado")
        await self._run(write)

    async def upsert_category(self, name: str, label: str) -> Dict[str, Any]:
        def write():
            with self.conn:
                self.conn.execute(
                    """
                    INSERT INTO categories (name, label) VALUES (?, ?)
                    ON CONFLICT(name) DO UPDATE SET label = excluded.label
                    """,
                    (name, label),
                )
                row = self.conn.execute("SELECT * FROM categories WHERE name = ?", (name,)).fetchone()
            return _category_row(row)
        return await self._run(write)

    async def delete_category(self, category_id: int) -> None:
        if not self.storable_id(category_id):
            raise NotFound("Categoría no encontrada")
        def write():
            with self.conn:
                row = self.conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
                if row is None:
                    raise NotFound("Categoría no encontrada")
                in_use = self.conn.execute(
                    "SELECT COUNT(*) FROM products WHERE category_id = ? OR category = ?",
                    (row["id"], row["label"]),
                ).fetchone()[0]
                if in_use:
                    raise Conflict(
                        f"La categoría está en uso por {in_use} producto(s)",
                        detail={"products": in_use},
                    )
                self.conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
        await self._run(write)
