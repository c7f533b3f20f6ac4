from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from billsync.billing.translator import price_id_for_tier
from billsync.errors import BillingError, ErrorKind
from billsync.extensions import db
from billsync.models import Subscription, SubscriptionStatus, Tier, User
from billsync.services.stripe_provider import StripeProvider, get_provider


def ensure_customer(user: User, provider: StripeProvider) -> Subscription:
    """
    Make sure the user has a Subscription row carrying a Stripe customer id.
    Creates the Stripe customer only when the row has none yet.
    """
    sub = db.session.query(Subscription).filter_by(user_id=user.id).one_or_none()
    if sub and sub.stripe_customer_id:
        return sub

    customer_id = provider.create_customer(email=user.email, user_id=user.id)
    if not sub:
        sub = Subscription(
            user_id=user.id,
            tier=Tier.FREE,
            status=SubscriptionStatus.ACTIVE,
            stripe_customer_id=customer_id,
        )
        db.session.add(sub)
    else:
        sub.stripe_customer_id = customer_id
    try:
        db.session.commit()
    except IntegrityError:
        # Another first checkout for this user inserted the row while Stripe was called
        db.session.rollback()
        sub = db.session.query(Subscription).filter_by(user_id=user.id).one()
        if sub.stripe_customer_id:
            return sub
        sub.stripe_customer_id = customer_id
        db.session.commit()

    current_app.logger.info(
        "billing.checkout.customer_created",
        extra={"user_id": user.id, "stripe_customer_id": customer_id},
    )
    return sub


def start_checkout(user_id: int, target_tier: Tier, success_url: str, cancel_url: str,
                   *, provider: Optional[StripeProvider] = None) -> Dict[str, Any]:
    """
    Create a Stripe Checkout Session moving the user to target_tier.
    Returns: {"session_id": ..., "url": ...}

    The {user_id, tier} metadata attached here is how later subscription
    webhooks find their way back to the local user.
    """
    provider = provider or get_provider()

    user = db.session.get(User, user_id)
    if not user:
        raise BillingError(ErrorKind.NOT_FOUND, f"User not found: {user_id}")

    tier = Tier(target_tier)
    # Resolved before any write; a missing price is never silently downgraded
    price_id = price_id_for_tier(tier)

    sub = ensure_customer(user, provider)

    session = provider.create_checkout_session(
        customer_id=sub.stripe_customer_id,
        price_id=price_id,
        success_url=success_url,
        cancel_url=cancel_url,
        metadata={"user_id": str(user.id), "tier": tier.value},
    )
    current_app.logger.info(
        "billing.checkout.session_created",
        extra={"user_id": user.id, "tier": tier.value, "session_id": session.get("session_id")},
    )
    return session
