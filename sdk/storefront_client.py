# sdk/storefront_client.py
import mimetypes
import os
import httpx
import requests
from typing import Any, Dict, List, Optional, Sequence


class StorefrontClient:
    def __init__(self, base_url: str = "http://localhost:4000", timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    # Catalog
    def get_data(self) -> Dict[str, Any]:
        r = self.session.get(self._url("/api/data"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def list_products(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        products = self.get_data()["products"]
        if category:
            products = [p for p in products if p.get("category") == category]
        return products

    def list_categories(self) -> List[Dict[str, Any]]:
        return self.get_data()["categories"]

    def get_product(self, product_id: int):
        r = self.session.get(self._url(f"/api/products/{product_id}"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()["product"]

    def create_product(self, name: str, price: float, category: Optional[str] = None, stock: int = 0,
                       discount: int = 0, short_desc: Optional[str] = None,
                       images: Optional[Sequence[str]] = None, category_id: Optional[int] = None):
        payload = {
            "name": name, "price": price, "category": category, "categoryId": category_id,
            "stock": stock, "discount": discount, "shortDesc": short_desc, "images": list(images or []),
        }
        r = self.session.post(self._url("/api/products"), json=payload, timeout=self.timeout)
        r.raise_for_status()
        return r.json()["product"]

    def update_product(self, product_id: int, fields: Dict[str, Any]):
        r = self.session.put(self._url(f"/api/products/{product_id}"), json=fields, timeout=self.timeout)
        r.raise_for_status()
        return r.json()["product"]

    def delete_product(self, product_id: int):
        r = self.session.delete(self._url(f"/api/products/{product_id}"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    # Categories
    def upsert_category(self, name: str, label: str):
        r = self.session.post(self._url("/api/categories"), json={"name": name, "label": label}, timeout=self.timeout)
        r.raise_for_status()
        return r.json()["category"]

    def delete_category(self, category_id: int):
        r = self.session.delete(self._url(f"/api/categories/{category_id}"), timeout=self.timeout)
        # 409 means the category is still in use; hand the body back so callers can show it
        if r.status_code == 409:
            return r.json()
        r.raise_for_status()
        return r.json()

    # Batch sync
    def save_all(self, products: List[Dict[str, Any]], categories: List[Dict[str, Any]]):
        r = self.session.post(self._url("/api/saveAll"), json={"products": products, "categories": categories},
                              timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    async def save_all_async(self, products: List[Dict[str, Any]], categories: List[Dict[str, Any]]):
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.post(self._url("/api/saveAll"), json={"products": products, "categories": categories})
            r.raise_for_status()
            return r.json()

    # Uploads
    def upload_images(self, paths: Sequence[str]) -> List[str]:
        files = []
        handles = []
        try:
            for path in paths:
                fh = open(path, "rb")
                handles.append(fh)
                content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
                files.append(("images", (os.path.basename(path), fh, content_type)))
            r = self.session.post(self._url("/api/upload"), files=files, timeout=self.timeout)
        finally:
            for fh in handles:
                fh.close()
        r.raise_for_status()
        return r.json()["urls"]

    # Checkout
    def purchase(self, cart: List[Dict[str, Any]], customer: Optional[Dict[str, Any]] = None):
        r = self.session.post(self._url("/api/purchase"), json={"cart": cart, "customerData": customer or {}},
                              timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def health(self):
        r = self.session.get(self._url("/api/test"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()
