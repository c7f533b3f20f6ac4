from flask import request, jsonify
from . import bp
from billsync.extensions import csrf, limiter
from billsync.services.reconciler import ingest

# ----- Stripe Webhook (subscriptions lifecycle) -----
@csrf.exempt
@limiter.exempt
@bp.post("/stripe")
def stripe_webhook():
    """
    Stripe -> /webhooks/stripe
    Signature is checked on the raw body; BillingError maps to 4xx/5xx via the app
    error handler. Any other failure surfaces as 500 so Stripe redelivers.
    """
    raw_bytes = request.get_data(cache=False, as_text=False)
    sig_header = request.headers.get("Stripe-Signature", "")

    applied = ingest(raw_bytes, sig_header)
    return jsonify({"received": True, "duplicate": not applied}), 200
