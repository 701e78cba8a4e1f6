# cli.py
import argparse
import json
import os
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box

from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle

from sdk.storefront_client import StorefrontClient

console = Console()

custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
})


# ---------------------------
# Display helpers
# ---------------------------
def show_products(products: List[Dict[str, Any]]):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return

    table = Table(
        title="📦 Catálogo",
        box=box.ROUNDED,
        header_style="bold cyan",
        title_style="bold magenta",
        show_lines=True
    )
    table.add_column("ID", style="dim", justify="right", width=6)
    table.add_column("Name", style="bold", width=24)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Disc.", justify="right", width=6)
    table.add_column("Stock", justify="right", width=6)
    table.add_column("Category", width=15)
    table.add_column("Images", justify="right", width=6)

    for p in products:
        table.add_row(
            str(p.get("id", "N/A")),
            p.get("name", "N/A"),
            f"{p.get('price', 0):.2f}",
            f"{p.get('discount', 0)}%",
            str(p.get("stock", 0)),
            p.get("category") or "-",
            str(len(p.get("images") or [])),
        )
    console.print(table)


def show_categories(categories: List[Dict[str, Any]]):
    if not categories:
        console.print("[italic yellow]No categories found[/italic yellow]")
        return
    table = Table(title="🏷️ Categorías", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Label")
    for cat in categories:
        table.add_row(str(cat["id"]), cat["name"], cat["label"])
    console.print(table)


def show_save_result(body: Dict[str, Any]):
    result = body.get("result", {})
    lines = [
        f"[green]created[/green]: {result.get('created', [])}",
        f"[cyan]updated[/cyan]: {result.get('updated', [])}",
        f"[yellow]deleted[/yellow]: {result.get('deleted', [])}",
        f"categories: {result.get('categories', [])}",
    ]
    for failure in result.get("failed", []):
        lines.append(f"[red]{failure['op']} {failure['kind']} {failure.get('ref')}: {failure['reason']}[/red]")
    style = "green" if not result.get("failed") else "yellow"
    console.print(Panel("\n".join(lines), title=body.get("message", "saveAll"), border_style=style))


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper with exception handling
# ---------------------------
def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """
    Calls fn(*args, **kwargs) behind a spinner.
    Errors are printed in a status panel and None is returned.
    """
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description="Processing...", total=None)
            result = fn(*args, **kwargs)
        if success_msg:
            console.print(show_status(success_msg, True))
        return result
    except Exception as e:
        console.print(show_status(f"Error: {e}", False))
        return None


# ---------------------------
# Interactive cart builder
# ---------------------------
def shell(c: StorefrontClient):
    products = try_api(c.list_products) or []
    if not products:
        console.print("[italic yellow]Catalog is empty[/italic yellow]")
        return
    show_products(products)
    by_name = {p["name"].lower(): p for p in products}
    completer = WordCompleter([p["name"] for p in products], ignore_case=True)

    cart: List[Dict[str, Any]] = []
    while True:
        name = prompt("Product (empty to finish): ", completer=completer, style=custom_style).strip()
        if not name:
            break
        product = by_name.get(name.lower())
        if not product:
            console.print(f"[red]Unknown product {name!r}[/red]")
            continue
        qty = prompt("Quantity: ", default="1").strip()
        if not qty.isdigit() or int(qty) <= 0:
            console.print("[red]Please enter a positive number.[/red]")
            continue
        cart.append({"productId": product["id"], "quantity": int(qty)})

    if not cart:
        return
    customer = {
        "name": prompt("Customer name: ").strip() or None,
        "phone": prompt("Phone: ").strip() or None,
        "email": prompt("Email: ").strip() or None,
    }
    body = try_api(c.purchase, cart, customer)
    if body:
        console.print(Panel.fit(
            f"💰 [bold]Total:[/bold] [green]{body['total']:.2f}[/green]\n{body['whatsappUrl']}",
            title="WhatsApp", border_style="green"
        ))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Storefront admin CLI")
    parser.add_argument("--base-url", default=os.getenv("STOREFRONT_URL", "http://127.0.0.1:4000"))
    subparsers = parser.add_subparsers(dest="command", required=True)

    lp = subparsers.add_parser("list", help="List products and categories")
    lp.add_argument("--category", help="Filter products by category label")

    gp = subparsers.add_parser("get-product", help="Get a product by its ID")
    gp.add_argument("--product-id", type=int, required=True)

    ap = subparsers.add_parser("add-product", help="Create a product")
    ap.add_argument("--name", required=True)
    ap.add_argument("--price", type=float, required=True)
    ap.add_argument("--category")
    ap.add_argument("--stock", type=int, default=0)
    ap.add_argument("--discount", type=int, default=0)
    ap.add_argument("--desc")
    ap.add_argument("--image", action="append", default=[], help="Image URL (repeatable)")

    dp = subparsers.add_parser("delete-product", help="Delete a product")
    dp.add_argument("--product-id", type=int, required=True)

    ac = subparsers.add_parser("add-category", help="Create or relabel a category")
    ac.add_argument("--name", required=True)
    ac.add_argument("--label", required=True)

    dc = subparsers.add_parser("delete-category", help="Delete an unused category")
    dc.add_argument("--category-id", type=int, required=True)

    up = subparsers.add_parser("upload", help="Upload image files")
    up.add_argument("paths", nargs="+")

    sa = subparsers.add_parser("save-all", help="Sync the whole catalog from a JSON file")
    sa.add_argument("file", help="JSON file with {products: [...], categories: [...]}")

    pu = subparsers.add_parser("purchase", help="Build the WhatsApp checkout link")
    pu.add_argument("--item", action="append", required=True, help="productId:quantity (repeatable)")
    pu.add_argument("--name")
    pu.add_argument("--phone")
    pu.add_argument("--email")

    subparsers.add_parser("shell", help="Interactive cart builder")
    subparsers.add_parser("health", help="Ping the API")
    return parser


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)
    c = StorefrontClient(base_url=args.base_url)

    if args.command == "list":
        data = try_api(c.get_data)
        if data:
            products = data["products"]
            if args.category:
                products = [p for p in products if p.get("category") == args.category]
            show_products(products)
            show_categories(data["categories"])

    elif args.command == "get-product":
        product = try_api(c.get_product, args.product_id)
        if product:
            show_products([product])

    elif args.command == "add-product":
        product = try_api(c.create_product, args.name, args.price, category=args.category, stock=args.stock,
                          discount=args.discount, short_desc=args.desc, images=args.image,
                          success_msg="Producto creado")
        if product:
            show_products([product])

    elif args.command == "delete-product":
        try_api(c.delete_product, args.product_id, success_msg="Producto eliminado")

    elif args.command == "add-category":
        category = try_api(c.upsert_category, args.name, args.label, success_msg="Categoría guardada")
        if category:
            show_categories([category])

    elif args.command == "delete-category":
        body = try_api(c.delete_category, args.category_id)
        if body:
            console.print(show_status(body.get("message") or body.get("error", ""), body.get("success", False)))

    elif args.command == "upload":
        urls = try_api(c.upload_images, args.paths, success_msg="Imágenes subidas")
        for url in urls or []:
            console.print(url)

    elif args.command == "save-all":
        with open(args.file, encoding="utf-8") as f:
            payload = json.load(f)
        # a file without "products" is rejected by the server rather than emptying the catalog
        body = try_api(c.save_all, payload.get("products"), payload.get("categories", []))
        if body:
            show_save_result(body)

    elif args.command == "purchase":
        cart = []
        for raw in args.item:
            pid, _, qty = raw.partition(":")
            cart.append({"productId": int(pid), "quantity": int(qty or 1)})
        body = try_api(c.purchase, cart, {"name": args.name, "phone": args.phone, "email": args.email})
        if body:
            console.print(Panel.fit(
                f"💰 [bold]Total:[/bold] [green]{body['total']:.2f}[/green]\n{body['whatsappUrl']}",
                title="WhatsApp", border_style="green"
            ))

    elif args.command == "shell":
        shell(c)

    elif args.command == "health":
        console.print(try_api(c.health))


if __name__ == "__main__":
    main()
