from typing import Dict, NamedTuple, Union

from billsync.extensions import db
from billsync.models import Subscription, Tier

UNLIMITED = -1


class UsageLimits(NamedTuple):
    card_limit: int
    contact_limit: int
    analytics_retention_days: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "card_limit": self.card_limit,
            "contact_limit": self.contact_limit,
            "analytics_retention_days": self.analytics_retention_days,
        }


TIER_LIMITS: Dict[Tier, UsageLimits] = {
    Tier.FREE: UsageLimits(card_limit=1, contact_limit=50, analytics_retention_days=7),
    Tier.PRO: UsageLimits(card_limit=5, contact_limit=UNLIMITED, analytics_retention_days=90),
    Tier.PREMIUM: UsageLimits(card_limit=UNLIMITED, contact_limit=UNLIMITED, analytics_retention_days=UNLIMITED),
}


def usage_limits(tier: Union[Tier, str, None]) -> UsageLimits:
    """Numeric limits for a tier. Unknown input gets FREE limits."""
    try:
        return TIER_LIMITS[Tier(tier)]
    except ValueError:
        return TIER_LIMITS[Tier.FREE]


def tier_for_user(user_id: int) -> Tier:
    sub = db.session.query(Subscription).filter_by(user_id=user_id).one_or_none()
    return sub.tier if sub else Tier.FREE


def limits_for_user(user_id: int) -> UsageLimits:
    return usage_limits(tier_for_user(user_id))
