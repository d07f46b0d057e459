from typing import Any, Dict, List

from fastapi import Depends, Request, Response
from starlette.requests import HTTPConnection

from ..controllers.customer import CustomerView
from ..controllers.kitchen import KitchenView
from ..core.session import CookieSessionStorage, SessionIdentityProvider, SessionRegistry
from ..models.order import Order
from ..services.change_feed import ChangeFeed, SupabaseChangeFeed
from ..services.order_store import OrderStore, SupabaseOrderStore
from ..utils.dates import format_currency, format_datetime, relative_time

order_store = SupabaseOrderStore()
change_feed = SupabaseChangeFeed()


def get_order_store() -> OrderStore:
    return order_store


def get_change_feed() -> ChangeFeed:
    return change_feed


def kitchen_view_for(app) -> KitchenView:
    """The process-wide board, started in main.startup_event"""
    view = getattr(app.state, "kitchen_view", None)
    if view is None:
        view = KitchenView(get_order_store(), get_change_feed())
        app.state.kitchen_view = view
    return view


def get_kitchen_view(connection: HTTPConnection) -> KitchenView:
    return kitchen_view_for(connection.app)


def get_session_registry() -> SessionRegistry:
    return SessionRegistry()


def get_session_provider(
    request: Request,
    response: Response,
    registry: SessionRegistry = Depends(get_session_registry)
) -> SessionIdentityProvider:
    return SessionIdentityProvider(CookieSessionStorage(request, response), registry)


def get_customer_view(
    provider: SessionIdentityProvider = Depends(get_session_provider),
    store: OrderStore = Depends(get_order_store)
) -> CustomerView:
    return CustomerView(store, provider.get_session_id())


def serialize_order(order: Order) -> Dict[str, Any]:
    data = order.model_dump(mode="json", by_alias=False)
    data["items"] = [
        {**line.model_dump(mode="json"), "line_total": line.line_total}
        for line in order.items
    ]
    data["item_count"] = order.item_count
    data["total_display"] = format_currency(order.total_amount)
    data["created_at_display"] = format_datetime(order.created_at)
    data["placed_ago"] = relative_time(order.created_at)
    return data


def serialize_orders(orders: List[Order]) -> List[Dict[str, Any]]:
    return [serialize_order(o) for o in orders]
