# storefront/stores/postgres_store.py
import ssl
from decimal import Decimal
from typing import Any, Dict, List, Optional

import asyncpg

from ..errors import Conflict, NotFound
from .base import CatalogStore, DEFAULT_CATEGORIES

SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    shortdesc TEXT,
    price NUMERIC(10,2) NOT NULL,
    category TEXT,
    category_id INT,
    discount INT DEFAULT 0,
    stock INT DEFAULT 0,
    images TEXT[] DEFAULT '{}',
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS categories (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    label TEXT NOT NULL,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
);

-- tables created by older deployments lack these
ALTER TABLE products ADD COLUMN IF NOT EXISTS category_id INT;
ALTER TABLE products ADD COLUMN IF NOT EXISTS created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP;
ALTER TABLE categories ADD COLUMN IF NOT EXISTS created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP;
CREATE UNIQUE INDEX IF NOT EXISTS categories_name_key ON categories (name);
"""


def _product_row(row: asyncpg.Record) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "shortDesc": row["shortdesc"],
        "price": float(row["price"]) if row["price"] is not None else None,
        "category": row["category"],
        "categoryId": row["category_id"],
        "discount": row["discount"],
        "stock": row["stock"],
        "images": list(row["images"] or []),
        "createdAt": row["created_at"].isoformat() if row["created_at"] else None,
    }


def _category_row(row: asyncpg.Record) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "label": row["label"],
        "createdAt": row["created_at"].isoformat() if row["created_at"] else None,
    }


def _product_params(fields: Dict[str, Any]) -> tuple:
    return (
        fields["name"],
        fields.get("shortDesc"),
        Decimal(str(fields["price"])),
        fields.get("category"),
        fields.get("categoryId"),
        fields.get("discount") or 0,
        fields.get("stock") or 0,
        list(fields.get("images") or []),
    )


class PostgresStore(CatalogStore):
    """Catalog in Postgres through an asyncpg pool."""

    name = "postgres"
    max_id = 2 ** 31 - 1

    def __init__(self, dsn: str, use_ssl: bool = False, seed_default_categories: bool = True,
                 command_timeout: Optional[float] = None):
        super().__init__(seed_default_categories)
        self.dsn = dsn
        self.use_ssl = use_ssl
        self.command_timeout = command_timeout
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        try:
            ssl_ctx = None
            if self.use_ssl:
                # Hosted providers present certificates we do not pin
                ssl_ctx = ssl.create_default_context()
                ssl_ctx.check_hostname = False
                ssl_ctx.verify_mode = ssl.CERT_NONE
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=1,
                max_size=10,
                ssl=ssl_ctx,
                command_timeout=self.command_timeout,
            )
            await self._run_migrations()
            self.logger.info("Conectado a PostgreSQL")
        except Exception as e:
            self.logger.error(f"Error conectando a PostgreSQL: {e}")
            raise

    async def close(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("Conexión a PostgreSQL cerrada")

    async def _run_migrations(self) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(SCHEMA)
                count = await conn.fetchval("SELECT COUNT(*) FROM categories")
                if self.seed_default_categories and count == 0:
                    await conn.executemany(
                        "INSERT INTO categories (name, label) VALUES ($1, $2) ON CONFLICT (name) DO NOTHING",
                        DEFAULT_CATEGORIES,
                    )
                    self.logger.info("Default categories inserted")

    # ---------------------------
    # Reads
    # ---------------------------
    async def list_products(self) -> List[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM products ORDER BY id DESC")
            return [_product_row(r) for r in rows]

    async def list_categories(self) -> List[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM categories ORDER BY id ASC")
            return [_category_row(r) for r in rows]

    async def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        if not self.storable_id(product_id):
            return None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM products WHERE id = $1", product_id)
            return _product_row(row) if row else None

    async def product_ids(self):
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT id FROM products")
            return {r["id"] for r in rows}

    # ---------------------------
    # Writes
    # ---------------------------
    async def insert_product(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                INSERT INTO products (name, shortdesc, price, category, category_id, discount, stock, images)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING *
            """, *_product_params(fields))
            return _product_row(row)

    async def update_product(self, product_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        if not self.storable_id(product_id):
            raise NotFound("Producto no encontrado")
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                UPDATE products
                SET name = $1, shortdesc = $2, price = $3, category = $4, category_id = $5,
                    discount = $6, stock = $7, images = $8
                WHERE id = $9
                RETURNING *
            """, *_product_params(fields), product_id)
            if row is None:
                raise NotFound("Producto no encontrado")
            return _product_row(row)

    async def delete_product(self, product_id: int) -> None:
        if not self.storable_id(product_id):
            raise NotFound("Producto no encontrado")
        async with self.pool.acquire() as conn:
            result = await conn.execute("DELETE FROM products WHERE id = $1", product_id)
            if result == "DELETE 0":
                raise NotFound("Producto no encontrado")

    async def upsert_category(self, name: str, label: str) -> Dict[str, Any]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow("""
                    INSERT INTO categories (name, label) VALUES ($1, $2)
                    ON CONFLICT (name) DO UPDATE SET label = EXCLUDED.label
                    RETURNING *
                """, name, label)
                return _category_row(row)

    async def delete_category(self, category_id: int) -> None:
        if not self.storable_id(category_id):
            raise NotFound("Categoría no encontrada")
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                category = await conn.fetchrow(
                    "SELECT * FROM categories WHERE id = $1 FOR UPDATE", category_id
                )
                if category is None:
                    raise NotFound("Categoría no encontrada")
                in_use = await conn.fetchval(
                    "SELECT COUNT(*) FROM products WHERE category_id = $1 OR category = $2",
                    category["id"], category["label"],
                )
                if in_use:
                    raise Conflict(
                        f"La categoría está en uso por {in_use} producto(s)",
                        detail={"products": in_use},
                    )
                await conn.execute("DELETE FROM categories WHERE id = $1", category_id)
