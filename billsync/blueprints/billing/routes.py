from urllib.parse import urljoin
from flask import request, jsonify, current_app, abort
from flask_login import login_required, current_user
from . import bp
from billsync.extensions import limiter
from billsync.models import Tier
from billsync.billing.entitlements import tier_for_user, usage_limits
from billsync.services.checkout import start_checkout
from billsync.services.cancellation import schedule_cancellation


def _absolute_url(path: str) -> str:
    base = (current_app.config.get("APP_BASE_URL") or "").rstrip("/") + "/"
    return urljoin(base, path.lstrip("/"))


@bp.post("/checkout-session")
@limiter.limit("10/minute")
@login_required
def checkout_session():
    data = request.get_json(silent=True) or {}
    try:
        tier = Tier((data.get("tier") or "").upper())
    except (AttributeError, ValueError):
        tier = None
    if tier is None or tier is Tier.FREE:
        abort(400, description="tier must be one of PRO, PREMIUM")

    success_url = data.get("success_url") or _absolute_url("billing?success=true")
    cancel_url = data.get("cancel_url") or _absolute_url("billing?canceled=true")

    session = start_checkout(current_user.id, tier, success_url, cancel_url)
    return jsonify(session)


@bp.delete("/subscription")
@login_required
def cancel_subscription():
    schedule_cancellation(current_user.id)
    return jsonify({"success": True})


@bp.get("/usage")
@login_required
def usage():
    tier = tier_for_user(current_user.id)
    return jsonify({"tier": tier.value, **usage_limits(tier).to_dict()})
