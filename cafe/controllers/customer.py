import logging
from typing import AsyncIterator, List, Optional

from ..core.errors import OrderNotFoundError, StoreError
from ..models.order import Order
from ..services.change_feed import ChangeFeed, ChangeScope
from ..services.order_store import OrderStore

logger = logging.getLogger(__name__)


class CustomerView:
    """Read-only list of the orders placed from one browser session"""

    def __init__(self, store: OrderStore, session_id: str, feed: Optional[ChangeFeed] = None):
        if not session_id:
            raise ValueError("CustomerView needs a session id")
        self.store = store
        self.session_id = session_id
        self.feed = feed
        self.orders: List[Order] = []
        self.error: Optional[str] = None
        self.loading = False

    async def refresh(self, show_loading: bool = True) -> List[Order]:
        if show_loading:
            self.loading = True
        try:
            orders = await self.store.fetch_session_orders(self.session_id)
        except StoreError as e:
            logger.error("Failed to fetch orders for session %s: %s", self.session_id, e.message)
            self.error = "Failed to load orders. Please try again."
            return self.orders
        finally:
            if show_loading:
                self.loading = False

        self.orders = [o for o in orders if o.session_id == self.session_id]
        self.error = None
        return self.orders

    async def get(self, order_id: str) -> Order:
        order = await self.store.fetch_order(order_id)
        if order is None or order.session_id != self.session_id:
            raise OrderNotFoundError(order_id)
        return order

    async def watch(self) -> AsyncIterator[List[Order]]:
        """Yield the refreshed list after every change to this session's orders"""
        if self.feed is None:
            raise RuntimeError("CustomerView has no change feed to subscribe to")
        events = self.feed.subscribe(ChangeScope.for_session(self.session_id))
        try:
            async for event in events:
                logger.debug("Order %s changed for session %s", event.record.get("id"), self.session_id)
                # Background refresh: loading state untouched
                yield await self.refresh(show_loading=False)
        finally:
            await events.aclose()
