import pytest
from billsync.errors import BillingError, ErrorKind
from billsync.extensions import db
from billsync.models import Subscription, Tier
from billsync.services.cancellation import schedule_cancellation

def test_no_subscription_row_is_rejected_without_provider_call(ctx, make_user, provider):
    uid = make_user()
    with pytest.raises(BillingError) as exc:
        schedule_cancellation(uid, provider=provider)
    assert exc.value.kind is ErrorKind.NO_ACTIVE_SUBSCRIPTION
    assert provider.cancelled == []

def test_row_without_stripe_subscription_is_rejected(ctx, make_user, provider):
    uid = make_user()
    db.session.add(Subscription(user_id=uid, stripe_customer_id="cus_1"))
    db.session.commit()

    with pytest.raises(BillingError) as exc:
        schedule_cancellation(uid, provider=provider)
    assert exc.value.kind is ErrorKind.NO_ACTIVE_SUBSCRIPTION
    assert provider.cancelled == []

def test_cancellation_is_mirrored_locally(ctx, make_user, provider):
    uid = make_user()
    db.session.add(Subscription(user_id=uid, tier=Tier.PRO, stripe_customer_id="cus_1",
                                stripe_subscription_id="sub_live"))
    db.session.commit()

    schedule_cancellation(uid, provider=provider)

    assert provider.cancelled == ["sub_live"]
    sub = Subscription.query.filter_by(user_id=uid).one()
    assert sub.cancel_at_period_end is True
    # Still entitled until the period ends
    assert sub.tier is Tier.PRO

def test_unconfigured_stripe_is_provider_unavailable(app, ctx, make_user, monkeypatch):
    monkeypatch.setitem(app.config, "STRIPE_SECRET_KEY", "")
    uid = make_user()
    with pytest.raises(BillingError) as exc:
        schedule_cancellation(uid)
    assert exc.value.kind is ErrorKind.PROVIDER_UNAVAILABLE
