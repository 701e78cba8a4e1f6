# tests/test_api.py
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

import storefront.main
from storefront.images import LocalImageStore
from storefront.main import create_app
from storefront.stores import JsonFileStore

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _create(client, **fields):
    payload = {"name": "Libro", "price": 10.0, "category": "Libros", "stock": 5}
    payload.update(fields)
    r = client.post("/api/products", json=payload)
    assert r.status_code == 200, r.text
    return r.json()["product"]


def test_data_shape_and_seeded_categories(client):
    r = client.get("/api/data")
    assert r.status_code == 200
    body = r.json()
    assert body["products"] == []
    assert [c["name"] for c in body["categories"]] == ["electronics", "clothing", "books", "home", "sports"]
    assert body["discounts"] == []
    assert body["config"]["whatsapp"]["number"] == "929528308"


def test_create_get_update_delete_product(client):
    created = _create(client, shortDescription="Tapa dura", images=["/uploads/x.png"])
    assert created["shortDesc"] == "Tapa dura"
    assert created["images"] == ["/uploads/x.png"]
    assert created["discount"] == 0

    r = client.get(f"/api/products/{created['id']}")
    assert r.json()["product"]["name"] == "Libro"

    r = client.put(f"/api/products/{created['id']}", json={"name": "Libro 2", "price": 12, "stock": 1})
    assert r.status_code == 200
    assert r.json()["product"]["price"] == 12

    r = client.delete(f"/api/products/{created['id']}")
    assert r.json() == {"success": True, "message": "Producto eliminado"}
    assert client.delete(f"/api/products/{created['id']}").status_code == 404
    assert client.get(f"/api/products/{created['id']}").status_code == 404


def test_product_validation_errors(client):
    for payload in (
        {"name": "Libro", "price": 0},
        {"name": "Libro", "price": -3},
        {"name": "   ", "price": 3},
        {"name": "Libro", "price": 3, "stock": -1},
        {"name": "Libro"},
    ):
        r = client.post("/api/products", json=payload)
        assert r.status_code == 400, payload
        assert r.json()["success"] is False
    assert client.get("/api/data").json()["products"] == []


def test_update_missing_product_is_404_and_creates_nothing(client):
    r = client.put("/api/products/999", json={"name": "ghost", "price": 1})
    assert r.status_code == 404
    assert r.json()["error"] == "Producto no encontrado"
    assert client.get("/api/data").json()["products"] == []


def test_category_upsert_and_guarded_delete(client):
    first = client.post("/api/categories", json={"name": "Toys", "label": "Juguetes"}).json()["category"]
    second = client.post("/api/categories", json={"name": "toys", "label": "Juguetería"}).json()["category"]
    assert first["id"] == second["id"]
    assert second["label"] == "Juguetería"

    product = _create(client, category="Juguetería")
    r = client.delete(f"/api/categories/{second['id']}")
    assert r.status_code == 409
    assert r.json()["details"] == {"products": 1}

    client.delete(f"/api/products/{product['id']}")
    assert client.delete(f"/api/categories/{second['id']}").status_code == 200
    assert client.delete(f"/api/categories/{second['id']}").status_code == 404


def test_category_requires_name_and_label(client):
    assert client.post("/api/categories", json={"name": "x", "label": " "}).status_code == 400
    assert client.post("/api/categories", json={"name": "x"}).status_code == 400


def test_category_label_resolved_from_category_id(client):
    categories = client.get("/api/data").json()["categories"]
    books = next(c for c in categories if c["name"] == "books")
    _create(client, category=None, categoryId=books["id"])

    client.post("/api/categories", json={"name": "books", "label": "Libros y cómics"})
    products = client.get("/api/data").json()["products"]
    assert products[0]["category"] == "Libros y cómics"
    assert client.delete(f"/api/categories/{books['id']}").status_code == 409


def test_save_all_reports_itemized_result(client):
    keep = _create(client, name="keep")
    drop = _create(client, name="drop")

    r = client.post("/api/saveAll", json={
        "products": [
            {"id": keep["id"], "name": "keep", "price": 11},
            {"name": "nuevo", "price": 2},
            {"name": "roto", "price": 0},
        ],
        "categories": [{"name": "garden", "label": "Jardín"}],
    })
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["result"]["deleted"] == [drop["id"]]
    assert body["result"]["updated"] == [keep["id"]]
    assert len(body["result"]["created"]) == 1
    assert body["result"]["failed"][0]["reason"].startswith("price must be > 0")

    data = client.get("/api/data").json()
    assert sorted(p["name"] for p in data["products"]) == ["keep", "nuevo"]
    assert "garden" in [c["name"] for c in data["categories"]]


def test_upload_accepts_images_and_serves_them(client):
    big = b"\x00" * (4 * 1024 * 1024)
    r = client.post("/api/upload", files=[("images", ("foto.png", big, "image/png"))])
    assert r.status_code == 200
    urls = r.json()["urls"]
    assert len(urls) == 1

    served = client.get(urls[0])
    assert served.status_code == 200
    assert served.content == big


def test_upload_rejections(client):
    r = client.post("/api/upload", files=[("images", ("notas.txt", b"hola", "text/plain"))])
    assert r.status_code == 400
    assert r.json()["error"] == "Solo se permiten imágenes"

    too_big = b"\x00" * (5 * 1024 * 1024 + 1)
    assert client.post("/api/upload", files=[("images", ("a.png", too_big, "image/png"))]).status_code == 400

    many = [("images", (f"{i}.png", PNG, "image/png")) for i in range(11)]
    assert client.post("/api/upload", files=many).status_code == 400

    assert client.post("/api/upload").status_code == 400


def test_purchase_builds_whatsapp_link(client):
    libro = _create(client, name="Libro", price=10.0)
    gone = _create(client, name="Agotado", price=50.0)
    client.delete(f"/api/products/{gone['id']}")

    r = client.post("/api/purchase", json={
        "cart": [{"id": libro["id"], "quantity": 2}, {"id": gone["id"], "quantity": 1}],
        "customerData": {"name": "Ana", "phone": "999888777"},
    })
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["total"] == 20.0
    assert body["whatsappUrl"].startswith("https://wa.me/929528308?text=")
    assert quote("Libro x2 - S/. 20.00", safe="") in body["whatsappUrl"]
    assert "Agotado" not in body["whatsappUrl"]


def test_purchase_with_empty_cart(client):
    assert client.post("/api/purchase", json={"cart": [], "customerData": {}}).status_code == 400
    assert client.post("/api/purchase", json={}).status_code == 400


def test_health(client):
    body = client.get("/api/test").json()
    assert body["success"] is True
    assert body["database"] == "json"


class BrokenStore(JsonFileStore):
    async def list_products(self):
        raise RuntimeError("connection refused")


def test_backend_failure_surfaces_as_503(settings, tmp_path):
    app = create_app(settings, store=BrokenStore(tmp_path / "broken.json"))
    with TestClient(app) as client:
        r = client.get("/api/data")
    assert r.status_code == 503
    assert r.json() == {"success": False, "error": "Error al obtener datos", "details": "connection refused"}


@pytest.fixture
def sqlite_client(settings):
    with TestClient(create_app(settings.model_copy(update={"store_backend": "sqlite"}))) as c:
        yield c


def test_ids_past_the_integer_column_are_not_found(sqlite_client):
    huge = 2 ** 63
    assert sqlite_client.get(f"/api/products/{huge}").status_code == 404
    assert sqlite_client.put(f"/api/products/{huge}", json={"name": "x", "price": 1}).status_code == 404
    assert sqlite_client.delete(f"/api/products/{huge}").status_code == 404
    assert sqlite_client.delete(f"/api/categories/{huge}").status_code == 404

    libro = _create(sqlite_client)
    r = sqlite_client.post("/api/purchase", json={
        "cart": [{"id": libro["id"], "quantity": 1}, {"id": huge, "quantity": 3}],
        "customerData": {},
    })
    assert r.status_code == 200
    assert r.json()["total"] == 10.0
    assert [item["productId"] for item in r.json()["items"]] == [libro["id"]]


def test_get_product_resolves_category_label(client):
    categories = client.get("/api/data").json()["categories"]
    books = next(c for c in categories if c["name"] == "books")
    product = _create(client, category="Libros", categoryId=books["id"])

    client.post("/api/categories", json={"name": "books", "label": "Libros y cómics"})
    r = client.get(f"/api/products/{product['id']}")
    assert r.json()["product"]["category"] == "Libros y cómics"


def test_save_all_reports_non_object_entries(client):
    r = client.post("/api/saveAll", json={
        "products": [{"name": "ok", "price": 3}, None, 7],
        "categories": ["garden", {"name": "garden", "label": "Jardín"}],
    })
    assert r.status_code == 200
    result = r.json()["result"]
    assert len(result["created"]) == 1
    assert result["categories"] == ["garden"]
    assert [f["reason"] for f in result["failed"]] == [
        "product entry must be an object",
        "product entry must be an object",
        "category entry must be an object",
    ]
    assert [p["name"] for p in client.get("/api/data").json()["products"]] == ["ok"]


def test_save_all_requires_the_product_list(client):
    kept = _create(client)
    assert client.post("/api/saveAll", json={"categories": []}).status_code == 400
    assert client.post("/api/saveAll", json={"products": None}).status_code == 400
    assert [p["id"] for p in client.get("/api/data").json()["products"]] == [kept["id"]]

    r = client.post("/api/saveAll", json={"products": []})
    assert r.json()["result"]["deleted"] == [kept["id"]]
    assert client.get("/api/data").json()["products"] == []


def test_upload_limits_apply_before_files_are_read(settings, tmp_path):
    app = create_app(settings, images=LocalImageStore(tmp_path / "small", max_bytes=16))
    with TestClient(app) as c:
        r = c.post("/api/upload", files=[("images", ("a.png", b"\x00" * 64, "image/png"))])
        assert r.status_code == 400
        # only one byte past the limit was read
        assert r.json()["details"]["size"] == 17

        many = [("images", (f"{i}.txt", b"x", "text/plain")) for i in range(11)]
        r = c.post("/api/upload", files=many)
        assert r.status_code == 400
        assert r.json()["error"] == "Máximo 10 imágenes por envío"


def test_importing_main_builds_no_app():
    assert not hasattr(storefront.main, "app")
