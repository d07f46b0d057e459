from enum import Enum
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    PLACED = "PLACED"
    ACCEPTED = "ACCEPTED"
    PREPARING = "PREPARING"
    READY = "READY"
    COMPLETED = "COMPLETED"


class OrderLine(BaseModel):
    """Line item as it was at checkout; later menu edits never touch it"""
    id: Optional[str] = None
    order_id: Optional[str] = None
    menu_item_id: Optional[str] = None  # NULL once the menu item is deleted
    quantity: int
    item_name: str
    item_price_at_order: int

    @property
    def line_total(self) -> int:
        return self.quantity * self.item_price_at_order


class Order(BaseModel):
    id: str
    order_number: Optional[int] = None
    session_id: str
    status: OrderStatus = OrderStatus.PLACED

    # Customer info
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None

    # Minor currency units
    total_amount: int

    feedback_given: bool = False

    created_at: datetime
    updated_at: Optional[datetime] = None

    items: List[OrderLine] = Field(default_factory=list, alias="order_items")

    class Config:
        populate_by_name = True

    @property
    def is_terminal(self) -> bool:
        return self.status == OrderStatus.COMPLETED

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    @classmethod
    def from_row(cls, row: dict) -> "Order":
        data = dict(row)
        if data.get("feedback_given") is None:
            data["feedback_given"] = False
        data["order_items"] = data.get("order_items") or []
        return cls.model_validate(data)


class MenuItem(BaseModel):
    id: str
    name: str
    price: int
    category: Optional[str] = None
    is_available: bool = True


class CartLine(BaseModel):
    menu_item_id: str
    quantity: int


class Feedback(BaseModel):
    id: Optional[str] = None
    order_id: str
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
