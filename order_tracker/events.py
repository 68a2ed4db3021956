"""
Canonical event vocabulary and the mapping from webhook notifications into it.
Notifications are parsed, mapped and dropped; they are never stored.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Union, assert_never, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from order_tracker.errors import OrderValidationError, UnknownSourceError, UnknownStatusError


class EventType(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"

    def __str__(self) -> str:
        return self.value


class _Notification(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    order_id: str = Field(..., alias="orderId", min_length=1)


class PaymentNotification(_Notification):
    source: Literal["payment"] = "payment"
    status: str
    amount: Decimal
    provider: str
    transaction_id: str = Field(..., alias="transactionId")


class ShipmentNotification(_Notification):
    source: Literal["shipment"] = "shipment"
    status: str
    carrier: str
    tracking_code: str = Field(..., alias="trackingCode")


class CancellationRequest(_Notification):
    source: Literal["cancel"] = "cancel"


Notification = Union[PaymentNotification, ShipmentNotification, CancellationRequest]

_SOURCES = frozenset(model.model_fields["source"].default for model in get_args(Notification))
_notification_adapter: TypeAdapter[Notification] = TypeAdapter(
    Annotated[Notification, Field(discriminator="source")]
)

_PAYMENT_EVENTS = {
    "approved": EventType.CONFIRMED,
    "declined": EventType.CANCELLED,
    "failed": EventType.CANCELLED,
}

_SHIPMENT_EVENTS = {
    "shipped": EventType.SHIPPED,
    "delivered": EventType.DELIVERED,
}


@dataclass(frozen=True)
class CanonicalEvent:
    """Normalized event. provenance is audit data, opaque to the state machine."""
    event_type: EventType
    order_id: str
    amount_paid: Decimal | None = None
    provenance: dict[str, Any] = field(default_factory=dict)


def parse_notification(data: dict[str, Any]) -> Notification:
    """Pick the notification variant from the "source" key and validate it."""
    source = data.get("source")
    if not isinstance(source, str) or source not in _SOURCES:
        raise UnknownSourceError(source)
    try:
        return _notification_adapter.validate_python(data)
    except ValidationError as e:
        raise OrderValidationError(f"Invalid {source} notification: {e}") from e


def map_to_event(notification: Notification) -> EventType:
    """Pure and deterministic: same notification, same canonical event type."""
    if not isinstance(notification, get_args(Notification)):
        raise UnknownSourceError(getattr(notification, "source", type(notification).__name__))
    if isinstance(notification, CancellationRequest):
        return EventType.CANCELLED
    if isinstance(notification, PaymentNotification):
        event = _PAYMENT_EVENTS.get(notification.status.lower())
        if event is None:
            raise UnknownStatusError(notification.source, notification.status)
        return event
    if isinstance(notification, ShipmentNotification):
        event = _SHIPMENT_EVENTS.get(notification.status.lower())
        if event is None:
            raise UnknownStatusError(notification.source, notification.status)
        return event
    assert_never(notification)


def to_canonical_event(notification: Notification) -> CanonicalEvent:
    event_type = map_to_event(notification)
    if isinstance(notification, PaymentNotification):
        return CanonicalEvent(
            event_type=event_type,
            order_id=notification.order_id,
            amount_paid=notification.amount if event_type is EventType.CONFIRMED else None,
            provenance={"provider": notification.provider, "transactionId": notification.transaction_id},
        )
    if isinstance(notification, ShipmentNotification):
        return CanonicalEvent(
            event_type=event_type,
            order_id=notification.order_id,
            provenance={"carrier": notification.carrier, "trackingCode": notification.tracking_code},
        )
    return CanonicalEvent(event_type=event_type, order_id=notification.order_id)
