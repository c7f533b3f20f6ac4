"""
Stripe webhook reconciler.

Keeps local Subscription/Invoice rows in line with Stripe using an
at-least-once, unordered event stream:

1. verify the signature on the raw bytes
2. skip events already in the ledger
3. claim the ledger row, run exactly one handler, commit both together

A handler that raises rolls the whole transaction back (ledger row included)
and the exception propagates, so the webhook request fails and Stripe
redelivers later. There is no internal retry loop.

Handlers overwrite every field they own rather than applying deltas, which
makes replays and "updated before created" harmless. An older event arriving
after a newer one is *not* detected and will overwrite newer state.
"""
from typing import Callable, Dict, Optional, Type

from flask import current_app
from sqlalchemy.exc import IntegrityError

from billsync.billing import ledger
from billsync.billing.events import (
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    InvoiceSnapshot,
    ParsedEvent,
    SubscriptionCreated,
    SubscriptionDeleted,
    SubscriptionSnapshot,
    SubscriptionUpdated,
    UnhandledEvent,
    parse_event,
)
from billsync.billing.translator import status_for_external, tier_for_price_id
from billsync.errors import ErrorKind
from billsync.extensions import db
from billsync.models import Invoice, Subscription, SubscriptionStatus, Tier, User
from billsync.services.stripe_provider import StripeProvider, get_provider


def _log_gap(event: ParsedEvent, reason: str, **fields) -> None:
    current_app.logger.warning(
        "billing.webhook.reconciliation_gap",
        extra={
            "error_kind": ErrorKind.RECONCILIATION_GAP.value,
            "event_id": event.event_id,
            "event_type": event.type,
            "reason": reason,
            **fields,
        },
    )


def _by_subscription_id(sub_id: Optional[str]) -> Optional[Subscription]:
    if not sub_id:
        return None
    return db.session.query(Subscription).filter_by(stripe_subscription_id=sub_id).one_or_none()


def _by_customer_id(cust_id: Optional[str]) -> Optional[Subscription]:
    if not cust_id:
        return None
    return db.session.query(Subscription).filter_by(stripe_customer_id=cust_id).one_or_none()


def _user_id_from_metadata(snapshot: SubscriptionSnapshot) -> Optional[int]:
    raw = snapshot.metadata.get("user_id")
    try:
        return int(raw) if raw else None
    except (TypeError, ValueError):
        return None


def _apply_snapshot(sub: Subscription, snapshot: SubscriptionSnapshot) -> None:
    """Full overwrite of every field a subscription event owns."""
    sub.stripe_subscription_id = snapshot.subscription_id
    if snapshot.customer_id:
        sub.stripe_customer_id = snapshot.customer_id
    sub.stripe_price_id = snapshot.price_id
    sub.tier = tier_for_price_id(snapshot.price_id)
    sub.status = status_for_external(snapshot.status)
    sub.current_period_start = snapshot.current_period_start
    sub.current_period_end = snapshot.current_period_end
    sub.cancel_at_period_end = snapshot.cancel_at_period_end


# ----- Handlers -----

def _on_subscription_created(event: SubscriptionCreated) -> None:
    snapshot = event.subscription
    user_id = _user_id_from_metadata(snapshot)

    sub = None
    if user_id is not None:
        sub = db.session.query(Subscription).filter_by(user_id=user_id).one_or_none()
        if sub is None:
            # Checkout bootstrap was skipped; create the row if the user is real
            if db.session.get(User, user_id) is None:
                _log_gap(event, "user_not_found", user_id=user_id)
                return
            sub = Subscription(user_id=user_id)
            db.session.add(sub)
    else:
        sub = _by_customer_id(snapshot.customer_id)
        if sub is None:
            _log_gap(event, "no_user_for_subscription", stripe_customer_id=snapshot.customer_id)
            return

    _apply_snapshot(sub, snapshot)
    current_app.logger.info(
        "billing.subscription.created",
        extra={"user_id": sub.user_id, "tier": sub.tier.value, "status": sub.status.value},
    )


def _on_subscription_updated(event: SubscriptionUpdated) -> None:
    snapshot = event.subscription
    sub = _by_subscription_id(snapshot.subscription_id) or _by_customer_id(snapshot.customer_id)
    if sub is None:
        _log_gap(event, "subscription_not_found", stripe_subscription_id=snapshot.subscription_id)
        return

    _apply_snapshot(sub, snapshot)
    current_app.logger.info(
        "billing.subscription.updated",
        extra={"stripe_subscription_id": snapshot.subscription_id, "tier": sub.tier.value, "status": sub.status.value},
    )


def _on_subscription_deleted(event: SubscriptionDeleted) -> None:
    snapshot = event.subscription
    sub = _by_subscription_id(snapshot.subscription_id)
    if sub is None:
        _log_gap(event, "subscription_not_found", stripe_subscription_id=snapshot.subscription_id)
        return

    sub.tier = Tier.FREE
    sub.status = SubscriptionStatus.CANCELED
    current_app.logger.info("billing.subscription.deleted", extra={"stripe_subscription_id": snapshot.subscription_id})


def _append_invoice(sub: Subscription, invoice: InvoiceSnapshot, amount: int) -> None:
    exists = db.session.query(Invoice.id).filter_by(stripe_invoice_id=invoice.invoice_id).first()
    if exists:
        # Append-only: a later event for the same invoice does not rewrite it
        current_app.logger.warning("billing.invoice.already_recorded", extra={"stripe_invoice_id": invoice.invoice_id})
        return
    db.session.add(Invoice(
        subscription_id=sub.id,
        stripe_invoice_id=invoice.invoice_id,
        amount=amount,
        currency=invoice.currency,
        status=invoice.status or "unknown",
        invoice_url=invoice.invoice_url,
        pdf_url=invoice.pdf_url,
    ))


def _subscription_for_invoice(event, invoice: InvoiceSnapshot) -> Optional[Subscription]:
    if not invoice.subscription_id:
        # One-off invoices are not part of subscription billing
        current_app.logger.info("billing.invoice.no_subscription", extra={"stripe_invoice_id": invoice.invoice_id})
        return None
    sub = _by_subscription_id(invoice.subscription_id)
    if sub is None:
        _log_gap(event, "subscription_not_found", stripe_subscription_id=invoice.subscription_id)
    return sub


def _on_invoice_payment_succeeded(event: InvoicePaymentSucceeded) -> None:
    invoice = event.invoice
    sub = _subscription_for_invoice(event, invoice)
    if sub is None:
        return
    _append_invoice(sub, invoice, invoice.amount_paid)
    current_app.logger.info("billing.invoice.paid", extra={"stripe_invoice_id": invoice.invoice_id})


def _on_invoice_payment_failed(event: InvoicePaymentFailed) -> None:
    invoice = event.invoice
    sub = _subscription_for_invoice(event, invoice)
    if sub is None:
        return
    sub.status = SubscriptionStatus.PAST_DUE
    _append_invoice(sub, invoice, invoice.amount_due)
    current_app.logger.info("billing.invoice.payment_failed", extra={"stripe_invoice_id": invoice.invoice_id})


def _on_unhandled(event: UnhandledEvent) -> None:
    current_app.logger.info("billing.webhook.unhandled", extra={"event_id": event.event_id, "event_type": event.type})


HANDLERS: Dict[Type, Callable] = {
    SubscriptionCreated: _on_subscription_created,
    SubscriptionUpdated: _on_subscription_updated,
    SubscriptionDeleted: _on_subscription_deleted,
    InvoicePaymentSucceeded: _on_invoice_payment_succeeded,
    InvoicePaymentFailed: _on_invoice_payment_failed,
    UnhandledEvent: _on_unhandled,
}


def dispatch(event: ParsedEvent) -> None:
    HANDLERS[type(event)](event)


def ingest(raw_body: bytes, signature: str, *, provider: Optional[StripeProvider] = None) -> bool:
    """
    Apply one Stripe webhook delivery.

    Returns True when the event was applied, False when it had already been
    processed (a redelivery is a successful no-op). Raises BillingError for
    signature/config problems; handler errors propagate untouched.
    """
    provider = provider or get_provider(require_webhook_secret=True)

    # 1) Verify on the exact bytes, before any parsing of our own
    payload = provider.construct_event(raw_body, signature)
    event = parse_event(payload)
    log_extra = {"event_id": event.event_id, "event_type": event.type}

    # 2) Fast-path dedupe
    if ledger.is_processed(event.event_id):
        current_app.logger.info("billing.webhook.duplicate", extra=log_extra)
        return False

    # 3) Claim + handle + commit as one transaction
    if not ledger.claim(event.event_id, event.type):
        current_app.logger.info("billing.webhook.duplicate_race", extra=log_extra)
        return False

    try:
        dispatch(event)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if ledger.is_processed(event.event_id):
            # A concurrent delivery committed first
            current_app.logger.info("billing.webhook.duplicate_race", extra=log_extra)
            return False
        current_app.logger.exception("billing.webhook.handler_error", extra=log_extra)
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("billing.webhook.handler_error", extra=log_extra)
        raise

    current_app.logger.info("billing.webhook.applied", extra=log_extra)
    return True
