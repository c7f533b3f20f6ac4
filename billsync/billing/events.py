"""
Typed view over Stripe webhook payloads.

Every verified event is parsed into exactly one of the classes below so the
reconciler dispatches over a closed set instead of comparing type strings.
Both the legacy payload shape (period fields on the subscription, ``subscription``
on the invoice) and the current one (period fields on the first item, subscription
under ``parent.subscription_details``) are accepted.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from billsync.errors import BillingError, ErrorKind


def _to_dt(ts) -> Optional[datetime]:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc) if ts else None


def _mapping(value, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise BillingError(ErrorKind.MALFORMED_EVENT, f"{what} is not an object")
    return value


def _id_of(value) -> Optional[str]:
    # Stripe expands some references into full objects
    if isinstance(value, dict):
        return value.get("id")
    return value or None


@dataclass(frozen=True)
class SubscriptionSnapshot:
    subscription_id: str
    customer_id: Optional[str]
    price_id: Optional[str]
    status: Optional[str]
    current_period_start: Optional[datetime]
    current_period_end: Optional[datetime]
    cancel_at_period_end: bool
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_object(cls, obj: Dict[str, Any]) -> "SubscriptionSnapshot":
        items = _mapping(obj.get("items"), "items").get("data") or []
        if not isinstance(items, list):
            raise BillingError(ErrorKind.MALFORMED_EVENT, "items.data is not a list")
        first = _mapping(items[0], "items.data[0]") if items else {}
        price = first.get("price") or {}
        return cls(
            subscription_id=obj.get("id"),
            customer_id=_id_of(obj.get("customer")),
            price_id=price.get("id") if isinstance(price, dict) else price,
            status=obj.get("status"),
            current_period_start=_to_dt(obj.get("current_period_start") or first.get("current_period_start")),
            current_period_end=_to_dt(obj.get("current_period_end") or first.get("current_period_end")),
            cancel_at_period_end=bool(obj.get("cancel_at_period_end")),
            metadata=dict(_mapping(obj.get("metadata"), "metadata")),
        )


@dataclass(frozen=True)
class InvoiceSnapshot:
    invoice_id: str
    subscription_id: Optional[str]
    amount_paid: int
    amount_due: int
    currency: Optional[str]
    status: Optional[str]
    invoice_url: Optional[str]
    pdf_url: Optional[str]

    @classmethod
    def from_object(cls, obj: Dict[str, Any]) -> "InvoiceSnapshot":
        sub_id = _id_of(obj.get("subscription"))
        if not sub_id:
            parent = _mapping(obj.get("parent"), "parent")
            details = _mapping(parent.get("subscription_details"), "parent.subscription_details")
            sub_id = _id_of(details.get("subscription"))
        return cls(
            invoice_id=obj.get("id"),
            subscription_id=sub_id,
            amount_paid=int(obj.get("amount_paid") or 0),
            amount_due=int(obj.get("amount_due") or 0),
            currency=obj.get("currency"),
            status=obj.get("status"),
            invoice_url=obj.get("hosted_invoice_url"),
            pdf_url=obj.get("invoice_pdf"),
        )


@dataclass(frozen=True)
class WebhookEvent:
    event_id: str
    type: str


@dataclass(frozen=True)
class SubscriptionCreated(WebhookEvent):
    subscription: SubscriptionSnapshot


@dataclass(frozen=True)
class SubscriptionUpdated(WebhookEvent):
    subscription: SubscriptionSnapshot


@dataclass(frozen=True)
class SubscriptionDeleted(WebhookEvent):
    subscription: SubscriptionSnapshot


@dataclass(frozen=True)
class InvoicePaymentSucceeded(WebhookEvent):
    invoice: InvoiceSnapshot


@dataclass(frozen=True)
class InvoicePaymentFailed(WebhookEvent):
    invoice: InvoiceSnapshot


@dataclass(frozen=True)
class UnhandledEvent(WebhookEvent):
    pass


ParsedEvent = Union[
    SubscriptionCreated,
    SubscriptionUpdated,
    SubscriptionDeleted,
    InvoicePaymentSucceeded,
    InvoicePaymentFailed,
    UnhandledEvent,
]

_SUBSCRIPTION_EVENTS = {
    "customer.subscription.created": SubscriptionCreated,
    "customer.subscription.updated": SubscriptionUpdated,
    "customer.subscription.deleted": SubscriptionDeleted,
}

_INVOICE_EVENTS = {
    "invoice.payment_succeeded": InvoicePaymentSucceeded,
    "invoice.payment_failed": InvoicePaymentFailed,
}


def parse_event(payload: Dict[str, Any]) -> ParsedEvent:
    if not isinstance(payload, dict):
        raise BillingError(ErrorKind.MALFORMED_EVENT, "Event payload is not an object")
    ev_id = payload.get("id")
    ev_type = payload.get("type")
    if not isinstance(ev_id, str) or not isinstance(ev_type, str) or not ev_id or not ev_type:
        raise BillingError(ErrorKind.MALFORMED_EVENT, "Event is missing id or type")

    if ev_type not in _SUBSCRIPTION_EVENTS and ev_type not in _INVOICE_EVENTS:
        return UnhandledEvent(ev_id, ev_type)

    obj = _mapping(_mapping(payload.get("data"), "data").get("object"), "data.object")
    if not obj.get("id"):
        raise BillingError(ErrorKind.MALFORMED_EVENT, f"{ev_type} without a data object id")

    try:
        if ev_type in _SUBSCRIPTION_EVENTS:
            return _SUBSCRIPTION_EVENTS[ev_type](ev_id, ev_type, SubscriptionSnapshot.from_object(obj))
        return _INVOICE_EVENTS[ev_type](ev_id, ev_type, InvoiceSnapshot.from_object(obj))
    except (TypeError, ValueError, OverflowError) as exc:
        # Non-numeric amounts or timestamps
        raise BillingError(ErrorKind.MALFORMED_EVENT, f"{ev_type} has a field of the wrong type") from exc
