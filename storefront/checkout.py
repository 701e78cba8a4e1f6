# storefront/checkout.py
import logging
from typing import Optional, Sequence
from urllib.parse import quote

from .core import CartItem, CustomerData
from .errors import EmptyCart, ValidationError
from .models import CheckoutIntent, CheckoutLine
from .stores import CatalogStore

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "No especificado"


def build_message(customer: CustomerData, lines: Sequence[str], total: float, currency: str) -> str:
    message = "🛒 *Nueva Compra*\n\n"
    message += f"👤 *Cliente:* {customer.name or NOT_SPECIFIED}\n"
    message += f"📱 *Teléfono:* {customer.phone or NOT_SPECIFIED}\n"
    message += f"📧 *Email:* {customer.email or NOT_SPECIFIED}\n\n"
    message += "🛍️ *Productos:*\n"
    message += "\n".join(lines) + "\n\n"
    message += f"💰 *Total: {currency} {total:.2f}*"
    return message


def whatsapp_link(number: str, message: str) -> str:
    digits = "".join(ch for ch in number if ch.isdigit())
    return f"https://wa.me/{digits}?text={quote(message, safe='')}"


async def format_checkout(
    store: CatalogStore,
    cart: Optional[Sequence[CartItem]],
    customer: Optional[CustomerData],
    whatsapp_number: str,
    currency: str = "S/.",
) -> CheckoutIntent:
    """Price the cart against the catalog and build the WhatsApp hand-off.

    Items whose product no longer exists are left out of both the total
    and the message.
    """
    if not cart:
        raise EmptyCart("Carrito vacío")
    customer = customer or CustomerData()

    total = 0.0
    lines = []
    items = []
    for item in cart:
        if item.quantity <= 0:
            raise ValidationError("quantity must be > 0", detail={"productId": item.productId})
        product = await store.get_product(item.productId)
        if not product:
            logger.info("checkout: product %s no longer exists, skipped", item.productId)
            continue
        line_total = round(float(product["price"]) * item.quantity, 2)
        total += line_total
        lines.append(f"{product['name']} x{item.quantity} - {currency} {line_total:.2f}")
        items.append(CheckoutLine(
            productId=product["id"],
            name=product["name"],
            quantity=item.quantity,
            unitPrice=float(product["price"]),
            lineTotal=line_total,
        ))

    total = round(total, 2)
    message = build_message(customer, lines, total, currency)
    return CheckoutIntent(
        total=total,
        whatsapp_url=whatsapp_link(whatsapp_number, message),
        message=message,
        items=items,
    )
