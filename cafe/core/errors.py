"""Order errors

Every error here is terminal for the attempt that raised it: nothing is applied
to local state. The API layer renders them as ``{"detail": ..., "error": code}``.
"""
from typing import Any, Optional


class OrderError(Exception):
    status_code = 400
    code = "order_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTransitionError(OrderError):
    code = "invalid_transition"

    def __init__(self, current: Any, proposed: Any, message: Optional[str] = None):
        self.current = current
        self.proposed = proposed
        super().__init__(
            message or f"Invalid status transition: {_label(current)} → {_label(proposed)}"
        )


class NoOpTransitionError(InvalidTransitionError):
    code = "noop_transition"

    def __init__(self, current: Any, proposed: Any):
        super().__init__(
            current, proposed,
            f"Invalid status transition: {_label(current)} → {_label(proposed)}. "
            f"Order is already in this status."
        )


class TerminalStateError(InvalidTransitionError):
    code = "terminal_state"

    def __init__(self, current: Any, proposed: Any):
        super().__init__(
            current, proposed,
            f"Invalid status transition: {_label(current)} → {_label(proposed)}. "
            f"Cannot change status of completed orders (terminal state)."
        )


class OrderNotFoundError(OrderError):
    status_code = 404
    code = "not_found"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class WriteDroppedError(OrderError):
    """The store accepted the update but changed no rows (usually an RLS policy)"""
    status_code = 409
    code = "write_dropped"

    def __init__(self, order_id: str, proposed: Any, message: Optional[str] = None):
        self.order_id = order_id
        self.proposed = proposed
        super().__init__(message or (
            f"Update of order {order_id} to {_label(proposed)} was silently dropped: "
            f"no rows were changed. Check the orders update policy."
        ))


class UpdateInFlightError(OrderError):
    status_code = 409
    code = "update_in_flight"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"An update for order {order_id} is already in progress")


class ConfirmationRequiredError(OrderError):
    code = "confirmation_required"


class CartError(OrderError):
    code = "invalid_cart"


class FeedbackError(OrderError):
    code = "feedback_rejected"


class StoreError(OrderError):
    """Network failure or an exception reported by the store"""
    status_code = 502
    code = "store_error"


def _label(value: Any) -> str:
    return getattr(value, "value", None) or str(value)
