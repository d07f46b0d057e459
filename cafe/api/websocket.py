import asyncio
import logging
from contextlib import suppress
from datetime import datetime
from typing import Dict, List, Set

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from ..controllers.customer import CustomerView
from ..controllers.kitchen import KitchenView
from ..core.permissions import is_admin_key, is_kitchen_key
from ..core.session import SessionRegistry
from ..models.order import Order
from ..services.change_feed import ChangeFeed
from ..services.order_store import OrderStore
from .deps import (
    get_change_feed,
    get_kitchen_view,
    get_order_store,
    get_session_registry,
    serialize_order,
    serialize_orders,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[str, Set[WebSocket]] = {
            "kitchen": set(),
        }

    async def connect(self, websocket: WebSocket, channel: str):
        await websocket.accept()
        self.active_connections.setdefault(channel, set()).add(websocket)

    def disconnect(self, websocket: WebSocket, channel: str):
        self.active_connections.get(channel, set()).discard(websocket)

    async def send_to_channel(self, message: dict, channel: str):
        dead_connections = set()
        for connection in list(self.active_connections.get(channel, set())):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.info("Dropping %s connection: %s", channel, e)
                dead_connections.add(connection)

        for conn in dead_connections:
            self.active_connections[channel].discard(conn)

manager = ConnectionManager()


async def wait_for_disconnect(websocket: WebSocket):
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass


@router.websocket("/orders")
async def websocket_endpoint(
    websocket: WebSocket,
    channel: str = Query(...),
    key: str = Query(None),
    session_id: str = Query(None),
    store: OrderStore = Depends(get_order_store),
    feed: ChangeFeed = Depends(get_change_feed),
    registry: SessionRegistry = Depends(get_session_registry),
    kitchen_view: KitchenView = Depends(get_kitchen_view)
):
    """Live order screens: ``channel=kitchen`` for staff, ``channel=customer`` for one session"""

    if channel == "customer":
        if not session_id:
            await websocket.close(code=1008, reason="Session id required")
            return
        if not registry.is_active(session_id):
            await websocket.close(code=1008, reason="Invalid session")
            return

        await websocket.accept()
        view = CustomerView(store, session_id, feed)
        await view.refresh()
        await websocket.send_json({"event": "orders", "orders": serialize_orders(view.orders), "error": view.error})

        async def push_updates():
            async for orders in view.watch():
                await websocket.send_json({"event": "orders", "orders": serialize_orders(orders), "error": view.error})

        task = asyncio.create_task(push_updates())
        try:
            await wait_for_disconnect(websocket)
        finally:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        return

    if channel == "kitchen":
        if not (is_kitchen_key(key) or is_admin_key(key)):
            await websocket.close(code=1008, reason="Kitchen access required")
            return

        await manager.connect(websocket, "kitchen")
        try:
            if not kitchen_view.orders and kitchen_view.error is None:
                await kitchen_view.refresh()
            await websocket.send_json(board_message(kitchen_view.orders, kitchen_view.error))
            await wait_for_disconnect(websocket)
        finally:
            manager.disconnect(websocket, "kitchen")
        return

    await websocket.close(code=1008, reason="Unknown channel")


def board_message(orders: List[Order], error: str = None) -> dict:
    return {
        "event": "board",
        "orders": serialize_orders(orders),
        "error": error,
        "timestamp": datetime.utcnow().isoformat()
    }


async def broadcast_board(orders: List[Order]):
    """KitchenView listener: push the re-fetched board to every kitchen screen"""
    await manager.send_to_channel(board_message(orders), "kitchen")


async def notify_order_update(order: Order, event_type: str):
    """Tell kitchen screens about a change made through this server"""
    message = {
        "event": event_type,
        "order_id": order.id,
        "data": serialize_order(order),
        "timestamp": datetime.utcnow().isoformat()
    }
    await manager.send_to_channel(message, "kitchen")
