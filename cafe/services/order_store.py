import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from ..core.errors import StoreError
from ..database import get_supabase
from ..models.order import MenuItem, Order, OrderLine, OrderStatus
from ..utils.dates import cafe_now

logger = logging.getLogger(__name__)

ORDER_SELECT = (
    "*,"
    "order_items(id, order_id, menu_item_id, quantity, item_name, item_price_at_order)"
)


class OrderStore:
    """Everything the order screens need from the backing store"""

    async def fetch_active_orders(self) -> List[Order]:
        """All orders with status != COMPLETED, newest first"""
        raise NotImplementedError

    async def fetch_session_orders(self, session_id: str) -> List[Order]:
        """All orders owned by ``session_id``, newest first"""
        raise NotImplementedError

    async def fetch_order(self, order_id: str) -> Optional[Order]:
        raise NotImplementedError

    async def fetch_orders_since(self, since: datetime) -> List[Order]:
        raise NotImplementedError

    async def update_status(self, order_id: str, status: OrderStatus) -> List[dict]:
        """Set status where id = order_id and return the changed rows.

        An empty list means the store accepted the request but changed nothing.
        """
        raise NotImplementedError

    async def fetch_menu_items(self, item_ids: List[str]) -> List[MenuItem]:
        raise NotImplementedError

    async def create_order(
        self,
        session_id: str,
        lines: List[OrderLine],
        total_amount: int,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> Order:
        raise NotImplementedError

    async def submit_feedback(self, order_id: str, rating: int, comment: Optional[str]) -> List[dict]:
        """Insert feedback and flag the order; returns the flagged order rows"""
        raise NotImplementedError


class SupabaseOrderStore(OrderStore):
    def __init__(self, client_factory: Callable[[], Awaitable[AsyncClient]] = get_supabase):
        self.client_factory = client_factory

    async def _execute(self, query, action: str):
        try:
            return await query.execute()
        except (APIError, httpx.HTTPError) as e:
            message = getattr(e, "message", None) or str(e)
            logger.error("Store error while trying to %s: %s", action, message)
            raise StoreError(f"Failed to {action}: {message}") from e

    async def _orders(self):
        client = await self.client_factory()
        return client.table("orders")

    async def fetch_active_orders(self) -> List[Order]:
        table = await self._orders()
        query = table.select(ORDER_SELECT).neq(
            "status", OrderStatus.COMPLETED.value
        ).order("created_at", desc=True)
        result = await self._execute(query, "load kitchen orders")
        return [Order.from_row(row) for row in result.data or []]

    async def fetch_session_orders(self, session_id: str) -> List[Order]:
        table = await self._orders()
        query = table.select(ORDER_SELECT).eq("session_id", session_id).order("created_at", desc=True)
        result = await self._execute(query, "load orders")
        return [Order.from_row(row) for row in result.data or []]

    async def fetch_order(self, order_id: str) -> Optional[Order]:
        table = await self._orders()
        result = await self._execute(table.select(ORDER_SELECT).eq("id", order_id), "load order")
        if not result.data:
            return None
        return Order.from_row(result.data[0])

    async def fetch_orders_since(self, since: datetime) -> List[Order]:
        table = await self._orders()
        query = table.select(ORDER_SELECT).gte("created_at", since.isoformat()).order("created_at", desc=True)
        result = await self._execute(query, "load today's orders")
        return [Order.from_row(row) for row in result.data or []]

    async def update_status(self, order_id: str, status: OrderStatus) -> List[dict]:
        table = await self._orders()
        query = table.update({
            "status": status.value,
            "updated_at": cafe_now().isoformat(),
        }).eq("id", order_id)
        result = await self._execute(query, "update order status")
        return result.data or []

    async def fetch_menu_items(self, item_ids: List[str]) -> List[MenuItem]:
        if not item_ids:
            return []
        client = await self.client_factory()
        query = client.table("menu_items").select("id, name, price, category, is_available").in_("id", item_ids)
        result = await self._execute(query, "load menu items")
        return [MenuItem.model_validate(row) for row in result.data or []]

    async def create_order(
        self,
        session_id: str,
        lines: List[OrderLine],
        total_amount: int,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> Order:
        client = await self.client_factory()

        result = await self._execute(client.table("orders").insert({
            "session_id": session_id,
            "customer_name": customer_name,
            "customer_phone": customer_phone,
            "status": OrderStatus.PLACED.value,
            "total_amount": total_amount,
        }), "create order")
        if not result.data:
            raise StoreError("Order created but ID not returned")
        order_id = result.data[0]["id"]

        items = [
            {
                "order_id": order_id,
                "menu_item_id": line.menu_item_id,
                "quantity": line.quantity,
                "item_name": line.item_name,
                "item_price_at_order": line.item_price_at_order,
            }
            for line in lines
        ]
        try:
            await self._execute(client.table("order_items").insert(items), "add order items")
        except StoreError:
            # Never leave an order without items on the kitchen board
            logger.error("Removing order %s after its items failed to insert", order_id)
            await self._execute(client.table("orders").delete().eq("id", order_id), "remove incomplete order")
            raise

        order = await self.fetch_order(order_id)
        if order is None:
            raise StoreError(f"Order {order_id} was created but could not be read back")
        return order

    async def submit_feedback(self, order_id: str, rating: int, comment: Optional[str]) -> List[dict]:
        client = await self.client_factory()
        await self._execute(client.table("feedback").insert({
            "order_id": order_id,
            "rating": rating,
            "comment": comment,
        }), "save feedback")
        result = await self._execute(
            client.table("orders").update({"feedback_given": True}).eq("id", order_id),
            "mark feedback given"
        )
        return result.data or []
