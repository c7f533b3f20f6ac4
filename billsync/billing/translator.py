import logging
from typing import Dict, Mapping, Optional

from flask import current_app

from billsync.errors import BillingError, ErrorKind
from billsync.models.subscription import SubscriptionStatus, Tier

logger = logging.getLogger(__name__)

# Config keys holding the Stripe Price ID for each paid tier
PRICE_CONFIG_KEYS: Dict[Tier, str] = {
    Tier.PRO: "STRIPE_PRICE_ID_PRO",
    Tier.PREMIUM: "STRIPE_PRICE_ID_PREMIUM",
}

# Every Stripe subscription status we know about. Anything else maps to ACTIVE.
STATUS_MAP: Dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.INCOMPLETE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
    "trialing": SubscriptionStatus.TRIALING,
    "paused": SubscriptionStatus.CANCELED,
}

DEFAULT_STATUS = SubscriptionStatus.ACTIVE


def price_catalog(config: Optional[Mapping] = None) -> Dict[Tier, Optional[str]]:
    """
    Tier -> Stripe Price ID, read from config (defaults to the app config).
    FREE is never sold, so it never carries a price.
    """
    cfg = current_app.config if config is None else config
    catalog: Dict[Tier, Optional[str]] = {Tier.FREE: None}
    for tier, key in PRICE_CONFIG_KEYS.items():
        catalog[tier] = cfg.get(key) or None
    return catalog


def price_id_for_tier(tier: Tier, config: Optional[Mapping] = None) -> str:
    price_id = price_catalog(config).get(Tier(tier))
    if not price_id:
        raise BillingError(ErrorKind.CONFIGURATION_MISSING, f"No price configured for tier: {Tier(tier).value}")
    return price_id


def tier_for_price_id(price_id: Optional[str], config: Optional[Mapping] = None) -> Tier:
    if not price_id:
        return Tier.FREE
    for tier, configured in price_catalog(config).items():
        if configured and configured == price_id:
            return tier
    logger.info("billing.price.unmapped", extra={"price_id": price_id})
    return Tier.FREE


def status_for_external(status: Optional[str]) -> SubscriptionStatus:
    mapped = STATUS_MAP.get((status or "").lower())
    if mapped is None:
        # Fail open: an unknown code must not lock a paying user out
        logger.warning("billing.status.unrecognized", extra={"external_status": status})
        return DEFAULT_STATUS
    return mapped
