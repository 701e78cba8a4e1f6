#!/usr/bin/env python
from rich import print

from sdk.storefront_client import StorefrontClient

SAMPLE_PRODUCTS = [
    {"name": "iPhone 15 Pro", "shortDesc": "Smartphone premium de Apple", "price": 1299.99,
     "category": "Electrónicos", "discount": 0, "stock": 10, "images": ["https://picsum.photos/300/300?random=1"]},
    {"name": "Samsung Galaxy S24", "shortDesc": "Android flagship", "price": 899.99,
     "category": "Electrónicos", "discount": 10, "stock": 8, "images": ["https://picsum.photos/300/300?random=2"]},
    {"name": "Nike Air Force 1", "shortDesc": "Zapatillas deportivas", "price": 129.99,
     "category": "Ropa", "discount": 15, "stock": 25, "images": ["https://picsum.photos/300/300?random=3"]},
]


def main():
    c = StorefrontClient(base_url="http://127.0.0.1:4000")

    print("[cyan]Checking API...[/cyan]")
    print(c.health())

    # -----------------------------
    # Replace the catalog in one batch
    # -----------------------------
    print("\nSyncing sample catalog...")
    categories = c.list_categories()
    body = c.save_all(SAMPLE_PRODUCTS, [{"name": cat["name"], "label": cat["label"]} for cat in categories])
    print(body["message"], body["result"])

    # -----------------------------
    # List products
    # -----------------------------
    products = c.list_products()
    for p in products:
        print(f"  #{p['id']} {p['name']} - S/. {p['price']:.2f} ({p['category']})")

    # -----------------------------
    # Checkout
    # -----------------------------
    print("\nBuilding WhatsApp checkout...")
    cart = [{"productId": products[0]["id"], "quantity": 2}]
    order = c.purchase(cart, {"name": "Ana", "phone": "999888777"})
    print(f"Total: S/. {order['total']:.2f}")
    print(order["whatsappUrl"])


if __name__ == "__main__":
    main()
