"""
Order lifecycle state machine. Valid transitions enforce business rules.
"""
from enum import Enum

from order_tracker.errors import InvalidStatusError, InvalidTransitionError


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value


# Current status -> allowed next statuses
VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),  # terminal
    OrderStatus.CANCELLED: frozenset(),  # terminal
}

_BY_NAME = {status.value: status for status in OrderStatus}


def is_valid_status(value: object) -> bool:
    """True if value names one of the statuses, ignoring case."""
    return isinstance(value, str) and value.upper() in _BY_NAME


def from_string(value: object) -> OrderStatus:
    if not is_valid_status(value):
        raise InvalidStatusError(value)
    return _BY_NAME[value.upper()]


def is_valid_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """True if target is in the successor set of current. Never true for current == target."""
    return target in VALID_TRANSITIONS[current]


def is_terminal(status: OrderStatus) -> bool:
    return not VALID_TRANSITIONS[status]


def transition(current: OrderStatus, target: OrderStatus | str) -> OrderStatus:
    """Return the new status, or raise InvalidTransitionError if the move is not in the table."""
    target = from_string(target)
    if not is_valid_transition(current, target):
        raise InvalidTransitionError(current_state=current.value, attempted_state=target.value)
    return target
