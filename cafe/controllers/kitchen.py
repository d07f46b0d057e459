"""Kitchen board

Shows every order that is not yet COMPLETED and mediates status changes.
One board per process; it re-fetches on every change notification.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from ..core.errors import (
    ConfirmationRequiredError,
    InvalidTransitionError,
    OrderError,
    OrderNotFoundError,
    StoreError,
    TerminalStateError,
    UpdateInFlightError,
    WriteDroppedError,
)
from ..core.transitions import StatusLike, check_transition, parse_status
from ..models.order import Order, OrderStatus
from ..services.change_feed import ChangeFeed, ChangeScope
from ..services.order_store import OrderStore

logger = logging.getLogger(__name__)

BoardListener = Callable[[List[Order]], Awaitable[None]]

FETCH_ERROR = "Failed to load orders. Please refresh."
FEED_ERROR = "Live updates stopped. Please refresh."


class KitchenView:
    def __init__(self, store: OrderStore, feed: Optional[ChangeFeed] = None):
        self.store = store
        self.feed = feed
        self.orders: List[Order] = []
        self.error: Optional[str] = None
        self.loading = False
        self.updating: Set[str] = set()
        self._listeners: List[BoardListener] = []
        self._task: Optional[asyncio.Task] = None

    # ---- Fetch ----

    async def refresh(self) -> List[Order]:
        """Re-fetch the board. On failure the last good board is kept."""
        self.loading = True
        try:
            orders = await self.store.fetch_active_orders()
        except StoreError as e:
            logger.error("Error fetching kitchen orders: %s", e.message)
            self.error = FETCH_ERROR
            return self.orders
        finally:
            self.loading = False

        self.orders = [o for o in orders if o.status != OrderStatus.COMPLETED]
        self.error = None
        if self._task is not None and self._task.done():
            logger.info("Resubscribing kitchen board to order changes")
            self.start()
        return self.orders

    def find(self, order_id: str) -> Optional[Order]:
        return next((o for o in self.orders if o.id == order_id), None)

    def filtered(self, status: Optional[StatusLike] = None) -> List[Order]:
        if status is None or status == "all":
            return list(self.orders)
        wanted = parse_status(status)
        if wanted is None:
            raise OrderError(f"Unknown order status: {status}")
        return [o for o in self.orders if o.status == wanted]

    # ---- Subscribe ----

    def add_listener(self, listener: BoardListener):
        self._listeners.append(listener)

    async def _notify(self):
        for listener in list(self._listeners):
            try:
                await listener(self.orders)
            except Exception:
                logger.exception("Kitchen board listener failed")

    async def run(self):
        """Re-fetch on every notification until cancelled"""
        if self.feed is None:
            raise RuntimeError("KitchenView has no change feed to subscribe to")
        events = self.feed.subscribe(ChangeScope.kitchen())
        try:
            async for event in events:
                logger.debug("Kitchen change %s on order %s", event.type.value, event.record.get("id"))
                await self.refresh()
                await self._notify()
        except Exception:
            logger.exception("Kitchen change feed failed")
        else:
            logger.warning("Kitchen change feed closed")
        finally:
            await events.aclose()

        # The next successful refresh() resubscribes
        self.error = FEED_ERROR

    @property
    def is_live(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    # ---- Update ----

    async def update_status(self, order_id: str, new_status: StatusLike, force: bool = False) -> Order:
        """Validate, write through, then apply locally.

        ``force`` skips step validation (reject) but never reopens a COMPLETED order.
        """
        if order_id in self.updating:
            raise UpdateInFlightError(order_id)

        order = self.find(order_id)
        if order is None:
            logger.warning("Order %s not found on the kitchen board", order_id)
            raise OrderNotFoundError(order_id)

        if force:
            target = parse_status(new_status)
            if order.status == OrderStatus.COMPLETED:
                raise TerminalStateError(order.status, new_status)
            if target is None:
                raise InvalidTransitionError(order.status, new_status)
        else:
            try:
                target = check_transition(order.status, new_status)
            except InvalidTransitionError as e:
                logger.warning("Invalid transition blocked for order #%s: %s", order.order_number, e.message)
                raise

        logger.info("Updating order #%s from %s to %s", order.order_number, order.status.value, target.value)
        self.updating.add(order_id)
        try:
            rows = await self.store.update_status(order_id, target)
        finally:
            self.updating.discard(order_id)

        if not rows:
            logger.error("Update of order #%s returned no rows; check the orders update policy", order.order_number)
            raise WriteDroppedError(order_id, target)

        data = order.model_dump(by_alias=True)
        data["status"] = target
        data["updated_at"] = rows[0].get("updated_at") or order.updated_at
        updated = Order.model_validate(data)

        # The board may have been replaced by a refresh while the write was in flight
        self.orders = [updated if o.id == order_id else o for o in self.orders]
        return updated

    async def reject(self, order_id: str, confirmed: bool = False) -> Order:
        if not confirmed:
            raise ConfirmationRequiredError(f"Rejecting order {order_id} must be confirmed")
        logger.info("Rejecting order %s", order_id)
        return await self.update_status(order_id, OrderStatus.COMPLETED, force=True)
