from collections import Counter
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..controllers.kitchen import KitchenView
from ..core.permissions import require_admin, require_kitchen_staff
from ..models.order import OrderStatus
from ..services.order_store import OrderStore
from ..utils.dates import format_currency, start_of_day
from .deps import get_kitchen_view, get_order_store, serialize_order, serialize_orders
from .websocket import notify_order_update

router = APIRouter(prefix="/kitchen", tags=["Kitchen"])


class OrderStatusUpdate(BaseModel):
    status: str


class OrderReject(BaseModel):
    confirm: bool = False


def board_response(view: KitchenView, status: Optional[str] = None) -> dict:
    return {
        "orders": serialize_orders(view.filtered(status)),
        "error": view.error,
        "updating": sorted(view.updating),
        "live": view.is_live,
    }


@router.get("/orders")
async def get_kitchen_orders(
    status: Optional[str] = Query(None, description="Filter by status, or 'all'"),
    view: KitchenView = Depends(get_kitchen_view),
    _: bool = Depends(require_kitchen_staff)
):
    """Every order that is not yet completed, newest first"""
    if not view.orders and view.error is None:
        await view.refresh()
    return board_response(view, status)


@router.post("/orders/refresh")
async def refresh_kitchen_orders(
    view: KitchenView = Depends(get_kitchen_view),
    _: bool = Depends(require_kitchen_staff)
):
    """Manual retry after a failed load"""
    await view.refresh()
    return board_response(view)


@router.patch("/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    status_update: OrderStatusUpdate,
    view: KitchenView = Depends(get_kitchen_view),
    _: bool = Depends(require_kitchen_staff)
):
    order = await view.update_status(order_id, status_update.status)
    await notify_order_update(order, "status_update")
    return {
        "message": f"Order status updated to {order.status.value}",
        "order": serialize_order(order)
    }


@router.post("/orders/{order_id}/reject")
async def reject_order(
    order_id: str,
    reject: OrderReject,
    view: KitchenView = Depends(get_kitchen_view),
    _: bool = Depends(require_kitchen_staff)
):
    order = await view.reject(order_id, confirmed=reject.confirm)
    await notify_order_update(order, "order_rejected")
    return {
        "message": f"Order #{order.order_number} rejected",
        "order": serialize_order(order)
    }


@router.get("/stats/today")
async def get_today_stats(
    store: OrderStore = Depends(get_order_store),
    _: bool = Depends(require_admin)
):
    """Order counts per status and revenue since the start of the business day"""
    orders = await store.fetch_orders_since(start_of_day())
    counts = Counter(o.status for o in orders)
    revenue = sum(o.total_amount for o in orders)
    feedback_pending = len([o for o in orders if o.is_terminal and not o.feedback_given])

    return {
        "total_orders": len(orders),
        **{status.value.lower(): counts.get(status, 0) for status in OrderStatus},
        "active": len([o for o in orders if not o.is_terminal]),
        "total_revenue": revenue,
        "total_revenue_display": format_currency(revenue),
        "awaiting_feedback": feedback_pending,
    }
