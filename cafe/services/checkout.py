import logging
from typing import List, Optional, Tuple

from ..core.errors import CartError
from ..models.order import CartLine, MenuItem, Order, OrderLine
from .order_store import OrderStore

logger = logging.getLogger(__name__)


def validate_cart(cart: List[CartLine]):
    if not cart:
        raise CartError("Cart is empty")
    for line in cart:
        if not line.menu_item_id:
            raise CartError("Invalid menu item ID")
        if line.quantity <= 0:
            raise CartError("Invalid quantity")


def merge_cart(cart: List[CartLine]) -> List[CartLine]:
    """Collapse repeated menu items into one line, keeping first-seen order"""
    merged = {}
    for line in cart:
        if line.menu_item_id in merged:
            merged[line.menu_item_id].quantity += line.quantity
        else:
            merged[line.menu_item_id] = CartLine(menu_item_id=line.menu_item_id, quantity=line.quantity)
    return list(merged.values())


def snapshot_lines(cart: List[CartLine], menu_items: List[MenuItem]) -> Tuple[List[OrderLine], int]:
    """Copy each item's current name and price into the order; return lines and total"""
    menu = {item.id: item for item in menu_items}
    lines = []
    for line in cart:
        item = menu.get(line.menu_item_id)
        if item is None:
            raise CartError(f"Menu item {line.menu_item_id} not found")
        if not item.is_available:
            raise CartError(f"{item.name} is not available")
        lines.append(OrderLine(
            menu_item_id=item.id,
            quantity=line.quantity,
            item_name=item.name,
            item_price_at_order=item.price,
        ))
    total = sum(l.line_total for l in lines)
    return lines, total


async def place_order(
    store: OrderStore,
    session_id: str,
    cart: List[CartLine],
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
) -> Order:
    if not session_id or not session_id.strip():
        raise CartError("Session ID is required")
    validate_cart(cart)
    cart = merge_cart(cart)

    menu_items = await store.fetch_menu_items([line.menu_item_id for line in cart])
    lines, total = snapshot_lines(cart, menu_items)

    order = await store.create_order(
        session_id,
        lines,
        total,
        customer_name=customer_name,
        customer_phone=customer_phone,
    )
    logger.info("Order #%s placed: %d items, total %d", order.order_number, order.item_count, total)
    return order
