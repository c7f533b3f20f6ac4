from typing import Optional

from flask import current_app

from billsync.errors import BillingError, ErrorKind
from billsync.extensions import db
from billsync.models import Subscription
from billsync.services.stripe_provider import StripeProvider, get_provider


def schedule_cancellation(user_id: int, *, provider: Optional[StripeProvider] = None) -> Subscription:
    """Cancel the user's Stripe subscription at period end and mirror the flag locally."""
    provider = provider or get_provider()

    sub = db.session.query(Subscription).filter_by(user_id=user_id).one_or_none()
    if not (sub and sub.stripe_subscription_id):
        raise BillingError(ErrorKind.NO_ACTIVE_SUBSCRIPTION, "No active subscription found")

    provider.cancel_at_period_end(sub.stripe_subscription_id)

    sub.cancel_at_period_end = True
    db.session.commit()

    current_app.logger.info(
        "billing.cancellation.scheduled",
        extra={"user_id": user_id, "stripe_subscription_id": sub.stripe_subscription_id},
    )
    return sub
