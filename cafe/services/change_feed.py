"""Change notifications for the orders table.

Viewers treat every event as a hint to re-fetch, never as data to apply.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Callable, Awaitable, Optional

from supabase import AsyncClient

from ..database import get_supabase
from ..models.order import OrderStatus

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class ChangeEvent:
    type: ChangeType
    table: str = "orders"
    record: dict = field(default_factory=dict)
    old_record: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> Optional["ChangeEvent"]:
        data = payload.get("data", payload)
        raw_type = data.get("type") or data.get("eventType")
        try:
            change_type = ChangeType(str(raw_type).upper())
        except ValueError:
            return None
        return cls(
            type=change_type,
            table=data.get("table", "orders"),
            record=data.get("record") or data.get("new") or {},
            old_record=data.get("old_record") or data.get("old") or {},
        )


@dataclass(frozen=True)
class ChangeScope:
    """A named channel plus an optional single-column row filter"""
    name: str
    column: Optional[str] = None
    op: str = "eq"
    value: Optional[str] = None

    @classmethod
    def kitchen(cls) -> "ChangeScope":
        return cls("kitchen-orders", "status", "neq", OrderStatus.COMPLETED.value)

    @classmethod
    def for_session(cls, session_id: str) -> "ChangeScope":
        return cls(f"customer-orders-{session_id}", "session_id", "eq", session_id)

    @property
    def filter(self) -> Optional[str]:
        if self.column is None:
            return None
        return f"{self.column}={self.op}.{self.value}"

    def matches(self, event: ChangeEvent) -> bool:
        if self.column is None:
            return True
        row = event.old_record if event.type == ChangeType.DELETE else event.record
        if self.column not in row:
            # Deletes usually carry the primary key only; let the viewer re-fetch
            return event.type == ChangeType.DELETE
        actual = row[self.column]
        if self.op == "eq":
            return actual == self.value
        if self.op == "neq":
            return actual != self.value
        raise ValueError(f"Unsupported filter operator: {self.op}")


class ChangeFeed:
    """subscribe(scope) -> async generator of ChangeEvent; callers aclose() it when done"""

    def subscribe(self, scope: ChangeScope) -> AsyncIterator[ChangeEvent]:
        raise NotImplementedError


class SupabaseChangeFeed(ChangeFeed):
    """Realtime ``postgres_changes`` on the orders table"""

    def __init__(
        self,
        client_factory: Callable[[], Awaitable[AsyncClient]] = get_supabase,
        schema: str = "public",
        table: str = "orders",
    ):
        self.client_factory = client_factory
        self.schema = schema
        self.table = table

    async def subscribe(self, scope: ChangeScope) -> AsyncIterator[ChangeEvent]:
        client = await self.client_factory()
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()

        def on_change(payload):
            loop.call_soon_threadsafe(queue.put_nowait, payload)

        channel = client.channel(scope.name)
        kwargs = {"schema": self.schema, "table": self.table}
        if scope.filter:
            kwargs["filter"] = scope.filter
        channel.on_postgres_changes("*", callback=on_change, **kwargs)
        await channel.subscribe()
        logger.info("Subscribed to %s (%s)", scope.name, scope.filter or "unfiltered")

        try:
            while True:
                payload = await queue.get()
                event = ChangeEvent.from_payload(payload)
                if event is None:
                    logger.debug("Ignoring realtime payload on %s: %s", scope.name, payload)
                    continue
                # Each viewer applies its own filter on top of the server-side one
                if scope.matches(event):
                    yield event
        finally:
            await client.remove_channel(channel)
            logger.info("Unsubscribed from %s", scope.name)
