# tests/test_stores.py
import asyncio
from datetime import datetime

import pytest

from storefront.errors import Conflict, NotFound
from storefront.stores import DEFAULT_CATEGORIES, JsonFileStore
from tests.helpers import make_store, product_fields, run_with


def test_insert_then_get_returns_supplied_fields(store):
    fields = product_fields("Cuaderno", 12.5, shortDesc="A5", category="Libros",
                            discount=5, stock=3, images=["/uploads/a.png", "/uploads/b.png"])

    async def scenario(s):
        first = await s.insert_product(fields)
        second = await s.insert_product(product_fields("Lapiz", 1.2))
        return first, second, await s.get_product(first["id"])

    first, second, fetched = run_with(store, scenario)
    assert first["id"] != second["id"]
    for key, value in fields.items():
        assert fetched[key] == value
    assert fetched["createdAt"]


def test_list_products_newest_first(store):
    async def scenario(s):
        for name in ("a", "b", "c"):
            await s.insert_product(product_fields(name))
        return await s.list_products()

    products = run_with(store, scenario)
    assert [p["name"] for p in products] == ["c", "b", "a"]


def test_update_missing_product_never_creates_row(store):
    async def scenario(s):
        await s.insert_product(product_fields())
        with pytest.raises(NotFound):
            await s.update_product(999, product_fields("ghost"))
        return await s.list_products()

    products = run_with(store, scenario)
    assert [p["name"] for p in products] == ["Libro"]


def test_update_replaces_fields(store):
    async def scenario(s):
        created = await s.insert_product(product_fields(stock=1))
        updated = await s.update_product(created["id"], product_fields("Libro 2", 15.0, stock=4))
        return created, updated

    created, updated = run_with(store, scenario)
    assert updated["id"] == created["id"]
    assert updated["name"] == "Libro 2"
    assert updated["price"] == 15.0
    assert updated["stock"] == 4


def test_delete_product(store):
    async def scenario(s):
        created = await s.insert_product(product_fields())
        await s.delete_product(created["id"])
        with pytest.raises(NotFound):
            await s.delete_product(created["id"])
        return await s.get_product(created["id"])

    assert run_with(store, scenario) is None


def test_upsert_category_twice_keeps_one_row(store):
    async def scenario(s):
        first = await s.upsert_category("books", "Libros")
        second = await s.upsert_category("books", "Libros y revistas")
        return first, second, await s.list_categories()

    first, second, categories = run_with(store, scenario)
    assert first["id"] == second["id"]
    assert [c["name"] for c in categories] == ["books"]
    assert categories[0]["label"] == "Libros y revistas"


def test_concurrent_upserts_do_not_duplicate(store):
    async def scenario(s):
        await asyncio.gather(*[s.upsert_category("books", f"Libros {i}") for i in range(10)])
        return await s.list_categories()

    categories = run_with(store, scenario)
    assert len([c for c in categories if c["name"] == "books"]) == 1


def test_delete_category_blocked_by_label_reference(store):
    async def scenario(s):
        category = await s.upsert_category("books", "Libros")
        product = await s.insert_product(product_fields(category="Libros"))
        with pytest.raises(Conflict):
            await s.delete_category(category["id"])
        await s.delete_product(product["id"])
        await s.delete_category(category["id"])
        return await s.list_categories()

    assert run_with(store, scenario) == []


def test_delete_category_blocked_by_id_reference(store):
    async def scenario(s):
        category = await s.upsert_category("books", "Libros")
        await s.insert_product(product_fields(categoryId=category["id"]))
        with pytest.raises(Conflict):
            await s.delete_category(category["id"])
        return await s.list_categories()

    assert len(run_with(store, scenario)) == 1


def test_delete_missing_category(store):
    async def scenario(s):
        with pytest.raises(NotFound):
            await s.delete_category(42)

    run_with(store, scenario)


@pytest.mark.parametrize("kind", ["json", "sqlite"])
def test_default_categories_seeded_once(kind, tmp_path):
    names = [name for name, _ in DEFAULT_CATEGORIES]

    first = run_with(make_store(kind, tmp_path, seed=True), lambda s: s.list_categories())
    again = run_with(make_store(kind, tmp_path, seed=True), lambda s: s.list_categories())
    assert [c["name"] for c in first] == names
    assert [c["id"] for c in again] == [c["id"] for c in first]


@pytest.mark.parametrize("kind", ["json", "sqlite"])
def test_data_survives_reopen(kind, tmp_path):
    created = run_with(make_store(kind, tmp_path), lambda s: s.insert_product(product_fields()))
    fetched = run_with(make_store(kind, tmp_path), lambda s: s.get_product(created["id"]))
    assert fetched == created


def test_json_document_layout(tmp_path):
    import json

    run_with(JsonFileStore(tmp_path / "store.json"), lambda s: s.insert_product(product_fields()))
    doc = json.loads((tmp_path / "store.json").read_text(encoding="utf-8"))
    assert set(doc) >= {"products", "categories", "discounts", "config"}
    assert doc["products"][0]["images"] == []


def test_json_ids_not_reused_after_delete(tmp_path):
    async def scenario(s):
        first = await s.insert_product(product_fields("a"))
        await s.delete_product(first["id"])
        second = await s.insert_product(product_fields("b"))
        return first["id"], second["id"]

    first_id, second_id = run_with(JsonFileStore(tmp_path / "store.json"), scenario)
    assert second_id > first_id


def test_out_of_range_ids_are_absent(store):
    async def scenario(s):
        for bad in (2 ** 63, -1):
            assert await s.get_product(bad) is None
            with pytest.raises(NotFound):
                await s.update_product(bad, product_fields())
            with pytest.raises(NotFound):
                await s.delete_product(bad)
            with pytest.raises(NotFound):
                await s.delete_category(bad)

    run_with(store, scenario)


def test_sqlite_timestamps_carry_utc_offset(tmp_path):
    async def scenario(s):
        return await s.insert_product(product_fields()), await s.upsert_category("toys", "Juguetes")

    product, category = run_with(make_store("sqlite", tmp_path), scenario)
    for stamp in (product["createdAt"], category["createdAt"]):
        assert "T" in stamp
        assert datetime.fromisoformat(stamp).utcoffset().total_seconds() == 0
