import hashlib
import json
from typing import Any, Dict, Optional

import stripe
from flask import current_app
from stripe import StripeClient

from billsync.errors import BillingError, ErrorKind


def make_idempotency_key(prefix: str, *parts: Any) -> str:
    raw = "|".join(str(p) for p in parts)
    return f"{prefix}:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


class StripeProvider:
    """
    Thin wrapper over the Stripe API used by the billing engine.

    Built once per operation from config (see get_provider) and passed in
    explicitly, so tests can hand a fake to any entry point.
    """

    def __init__(self, api_key: str, webhook_secret: Optional[str] = None,
                 client: Optional[StripeClient] = None, tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE):
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance
        self._client = client or StripeClient(api_key)

    def create_customer(self, *, email: str, user_id: int) -> str:
        customer = self._client.customers.create(
            params={"email": email, "metadata": {"user_id": str(user_id)}},
            # Concurrent bootstraps for one user collapse into one Stripe customer
            options={"idempotency_key": make_idempotency_key("customer", user_id)},
        )
        return customer.id

    def create_checkout_session(self, *, customer_id: str, price_id: str, success_url: str,
                                cancel_url: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        """Returns: {"session_id": <session_id>, "url": <redirect_url or None>}"""
        params: Dict[str, Any] = {
            "mode": "subscription",
            "customer": customer_id,
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            # Session metadata is not copied onto the subscription; webhooks read the latter
            "metadata": metadata,
            "subscription_data": {"metadata": metadata},
        }
        session = self._client.checkout.sessions.create(params=params)
        return {"session_id": session.id, "url": getattr(session, "url", None)}

    def cancel_at_period_end(self, subscription_id: str) -> None:
        self._client.subscriptions.update(subscription_id, params={"cancel_at_period_end": True})

    def construct_event(self, raw_body: bytes, signature: str) -> Dict[str, Any]:
        """Verify the Stripe-Signature over the exact bytes received, then parse."""
        if not self.webhook_secret:
            raise BillingError(ErrorKind.PROVIDER_UNAVAILABLE, "STRIPE_WEBHOOK_SECRET is not configured")
        try:
            # Stripe only signs UTF-8 JSON; undecodable bytes were altered in transit
            text = raw_body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BillingError(ErrorKind.INVALID_SIGNATURE, "Webhook signature verification failed") from exc
        try:
            stripe.Webhook.construct_event(
                payload=text,
                sig_header=signature or "",
                secret=self.webhook_secret,
                tolerance=self.tolerance,
            )
        except stripe.SignatureVerificationError as exc:
            raise BillingError(ErrorKind.INVALID_SIGNATURE, "Webhook signature verification failed") from exc
        except ValueError as exc:
            raise BillingError(ErrorKind.MALFORMED_EVENT, "Webhook body is not valid JSON") from exc
        return json.loads(text)


def get_provider(*, require_webhook_secret: bool = False) -> StripeProvider:
    cfg = current_app.config
    key = cfg.get("STRIPE_SECRET_KEY")
    if not key:
        raise BillingError(ErrorKind.PROVIDER_UNAVAILABLE, "STRIPE_SECRET_KEY is not configured")
    secret = cfg.get("STRIPE_WEBHOOK_SECRET")
    if require_webhook_secret and not secret:
        raise BillingError(ErrorKind.PROVIDER_UNAVAILABLE, "STRIPE_WEBHOOK_SECRET is not configured")
    return StripeProvider(
        key,
        webhook_secret=secret,
        tolerance=cfg.get("STRIPE_WEBHOOK_TOLERANCE", stripe.Webhook.DEFAULT_TOLERANCE),
    )
