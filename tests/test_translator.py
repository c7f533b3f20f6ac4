import logging
import pytest
from billsync.billing.translator import (
    price_catalog,
    price_id_for_tier,
    status_for_external,
    tier_for_price_id,
)
from billsync.errors import BillingError, ErrorKind
from billsync.models import SubscriptionStatus, Tier

CFG = {"STRIPE_PRICE_ID_PRO": "price_pro", "STRIPE_PRICE_ID_PREMIUM": "price_premium"}

def test_price_for_paid_tiers():
    assert price_id_for_tier(Tier.PRO, CFG) == "price_pro"
    assert price_id_for_tier(Tier.PREMIUM, CFG) == "price_premium"

def test_free_tier_has_no_price():
    with pytest.raises(BillingError) as exc:
        price_id_for_tier(Tier.FREE, CFG)
    assert exc.value.kind is ErrorKind.CONFIGURATION_MISSING

def test_unconfigured_price_is_configuration_missing():
    with pytest.raises(BillingError) as exc:
        price_id_for_tier(Tier.PREMIUM, {"STRIPE_PRICE_ID_PRO": "price_pro", "STRIPE_PRICE_ID_PREMIUM": ""})
    assert exc.value.kind is ErrorKind.CONFIGURATION_MISSING
    assert "PREMIUM" in exc.value.message

def test_tier_for_price_id_round_trips_configured_prices():
    assert tier_for_price_id("price_pro", CFG) is Tier.PRO
    assert tier_for_price_id("price_premium", CFG) is Tier.PREMIUM

@pytest.mark.parametrize("price_id", [None, "", "price_unknown"])
def test_tier_for_price_id_falls_back_to_free(price_id):
    assert tier_for_price_id(price_id, CFG) is Tier.FREE

def test_tier_for_price_id_with_nothing_configured():
    assert tier_for_price_id("price_pro", {}) is Tier.FREE

@pytest.mark.parametrize("external, expected", [
    ("active", SubscriptionStatus.ACTIVE),
    ("past_due", SubscriptionStatus.PAST_DUE),
    ("unpaid", SubscriptionStatus.PAST_DUE),
    ("canceled", SubscriptionStatus.CANCELED),
    ("incomplete", SubscriptionStatus.INCOMPLETE),
    ("incomplete_expired", SubscriptionStatus.CANCELED),
    ("trialing", SubscriptionStatus.TRIALING),
    ("paused", SubscriptionStatus.CANCELED),
])
def test_status_mapping(external, expected):
    assert status_for_external(external) is expected

@pytest.mark.parametrize("external", ["brand_new_status", "", None, "ACTIVE "])
def test_unknown_status_fails_open_and_is_logged(external, caplog):
    with caplog.at_level(logging.WARNING, logger="billsync.billing.translator"):
        assert status_for_external(external) is SubscriptionStatus.ACTIVE
    assert any(r.getMessage() == "billing.status.unrecognized" for r in caplog.records)

def test_price_catalog_reads_app_config(ctx):
    catalog = price_catalog()
    assert catalog[Tier.FREE] is None
    assert catalog[Tier.PRO] == "price_pro_monthly"
    assert catalog[Tier.PREMIUM] == "price_premium_monthly"
