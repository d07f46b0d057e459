import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..controllers.customer import CustomerView
from ..core.errors import FeedbackError, WriteDroppedError
from ..core.rate_limiter import order_limiter
from ..core.session import SessionIdentityProvider
from ..models.order import CartLine, OrderStatus
from ..services.checkout import place_order
from ..services.order_store import OrderStore
from .deps import get_customer_view, get_order_store, get_session_provider, serialize_order, serialize_orders
from .websocket import notify_order_update

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


class OrderCreate(BaseModel):
    items: List[CartLine]
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None


class FeedbackCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None


@router.post("", status_code=201)
async def create_order(
    order_data: OrderCreate,
    provider: SessionIdentityProvider = Depends(get_session_provider),
    store: OrderStore = Depends(get_order_store),
    _: int = Depends(order_limiter)
):
    session_id = provider.get_session_id()
    identity = provider.get_identity()

    name = order_data.customer_name or (identity.name if identity else None)
    phone = order_data.customer_phone or (identity.phone if identity else None)
    if order_data.customer_name and order_data.customer_phone:
        provider.set_identity(order_data.customer_name, order_data.customer_phone)

    order = await place_order(store, session_id, order_data.items, customer_name=name, customer_phone=phone)
    await notify_order_update(order, "new_order")
    return {"message": "Order placed", "order": serialize_order(order)}


@router.get("")
async def get_my_orders(view: CustomerView = Depends(get_customer_view)):
    """Orders placed from this browser session, newest first"""
    orders = await view.refresh()
    return {"session_id": view.session_id, "orders": serialize_orders(orders), "error": view.error}


@router.get("/{order_id}")
async def get_my_order(order_id: str, view: CustomerView = Depends(get_customer_view)):
    order = await view.get(order_id)
    return serialize_order(order)


@router.post("/{order_id}/feedback", status_code=201)
async def submit_feedback(
    order_id: str,
    feedback: FeedbackCreate,
    view: CustomerView = Depends(get_customer_view),
    store: OrderStore = Depends(get_order_store)
):
    order = await view.get(order_id)
    if order.status != OrderStatus.COMPLETED:
        raise FeedbackError("Feedback can only be given for completed orders")
    if order.feedback_given:
        raise FeedbackError("Feedback has already been submitted for this order")

    comment = (feedback.comment or "").strip() or None
    rows = await store.submit_feedback(order_id, feedback.rating, comment)
    if not rows:
        logger.error("Feedback flag for order %s changed no rows; check the orders update policy", order_id)
        raise WriteDroppedError(
            order_id, "feedback_given",
            f"Feedback for order {order_id} was saved but the order was not marked: "
            f"no rows were changed. Check the orders update policy."
        )
    return {"message": "Thank you for your feedback!", "order_id": order_id, "rating": feedback.rating}
