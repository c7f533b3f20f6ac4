import pytest
from billsync.billing.entitlements import UNLIMITED, limits_for_user, usage_limits
from billsync.extensions import db
from billsync.models import Subscription, Tier

def test_free_limits():
    limits = usage_limits(Tier.FREE)
    assert (limits.card_limit, limits.contact_limit, limits.analytics_retention_days) == (1, 50, 7)

def test_pro_limits():
    limits = usage_limits(Tier.PRO)
    assert limits.card_limit == 5
    assert limits.contact_limit == UNLIMITED
    assert limits.analytics_retention_days == 90

def test_premium_is_unlimited_everywhere():
    assert usage_limits(Tier.PREMIUM).to_dict() == {
        "card_limit": -1,
        "contact_limit": -1,
        "analytics_retention_days": -1,
    }

def test_accepts_string_values():
    assert usage_limits("PRO") == usage_limits(Tier.PRO)

@pytest.mark.parametrize("tier", [None, "GOLD", 3])
def test_unknown_tier_gets_free_limits(tier):
    assert usage_limits(tier) == usage_limits(Tier.FREE)

def test_user_without_subscription_is_free(ctx, make_user):
    uid = make_user()
    assert limits_for_user(uid) == usage_limits(Tier.FREE)

def test_user_limits_follow_subscription_tier(ctx, make_user):
    uid = make_user()
    db.session.add(Subscription(user_id=uid, tier=Tier.PREMIUM))
    db.session.commit()
    assert limits_for_user(uid).card_limit == UNLIMITED
