"""Order status state machine

PLACED → ACCEPTED → PREPARING → READY → COMPLETED, one step at a time.
COMPLETED is terminal. Rejecting an order is a forced move to COMPLETED and is
not validated here (see ``KitchenView.reject``).
"""
from typing import Optional, Union

from ..models.order import OrderStatus
from .errors import InvalidTransitionError, NoOpTransitionError, TerminalStateError

STATUS_CHAIN = (
    OrderStatus.PLACED,
    OrderStatus.ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.COMPLETED,
)

VALID_TRANSITIONS = {
    status: [STATUS_CHAIN[i + 1]] if i + 1 < len(STATUS_CHAIN) else []
    for i, status in enumerate(STATUS_CHAIN)
}

StatusLike = Union[OrderStatus, str]


def parse_status(value: StatusLike) -> Optional[OrderStatus]:
    """Case-insensitive lookup; None for anything outside the chain"""
    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return OrderStatus(value.strip().upper())
    except ValueError:
        return None


def next_status(status: StatusLike) -> Optional[OrderStatus]:
    parsed = parse_status(status)
    if parsed is None:
        return None
    successors = VALID_TRANSITIONS[parsed]
    return successors[0] if successors else None


def check_transition(current: StatusLike, proposed: StatusLike) -> OrderStatus:
    """Raise unless ``proposed`` is the immediate successor of ``current``.

    Returns the parsed target status.
    """
    current_status = parse_status(current)
    proposed_status = parse_status(proposed)

    if current_status is None or proposed_status is None:
        raise InvalidTransitionError(current, proposed)
    if current_status == OrderStatus.COMPLETED:
        raise TerminalStateError(current_status, proposed_status)
    if current_status == proposed_status:
        raise NoOpTransitionError(current_status, proposed_status)
    if proposed_status not in VALID_TRANSITIONS[current_status]:
        raise InvalidTransitionError(current_status, proposed_status)

    return proposed_status


def is_valid_transition(current: StatusLike, proposed: StatusLike) -> bool:
    try:
        check_transition(current, proposed)
    except InvalidTransitionError:
        return False
    return True
