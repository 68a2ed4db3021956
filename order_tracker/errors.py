"""
Exception hierarchy for the order lifecycle core.
Everything raised on the transition/reconciliation path derives from OrderError.
"""
from decimal import Decimal


class OrderError(Exception):
    """Base class for expected domain and persistence failures."""


class OrderValidationError(OrderError):
    """Malformed input rejected before it reaches the state machine."""


class InvalidStatusError(OrderValidationError):
    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid status: {value!r}")


class UnknownStatusError(OrderValidationError):
    """Notification status that maps to no canonical event."""
    def __init__(self, source: str, status: str):
        self.source = source
        self.status = status
        super().__init__(f"Unknown {source} status: {status!r}")


class UnknownSourceError(OrderValidationError):
    """Notification from a source the mapper does not know."""
    def __init__(self, source: object):
        self.source = source
        super().__init__(f"Unknown notification source: {source!r}")


class InvalidTransitionError(OrderError):
    """Raised when an order status change is not allowed. The order is left unmodified."""
    def __init__(self, current_state: str | None = None, attempted_state: str | None = None, reason: str = ""):
        self.current_state = current_state
        self.attempted_state = attempted_state
        message = reason or f"Invalid status transition from {current_state} to {attempted_state}"
        super().__init__(message)


class AmountMismatchError(OrderError):
    def __init__(self, message: str, difference: Decimal | None = None):
        self.difference = difference
        super().__init__(message)


class OrderNotFoundError(OrderError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order with ID {order_id} not found")


class PersistenceError(OrderError):
    """Store/load failure from a repository adapter. Propagated as-is."""


class ConcurrentModificationError(PersistenceError):
    """
    The stored order changed between read and write (optimistic concurrency).
    expected_status is the status observed at read time, None for a create.
    """
    def __init__(self, order_id: str, expected_status: str | None):
        self.order_id = order_id
        self.expected_status = expected_status
        if expected_status is None:
            message = f"Order {order_id} already exists"
        else:
            message = f"Order {order_id} is no longer in status {expected_status}"
        super().__init__(message)


class MissingHandlerError(Exception):
    """Startup wiring error: a canonical event type has no registered handler."""
