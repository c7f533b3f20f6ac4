import enum
from sqlalchemy import func, UniqueConstraint
from billsync.extensions import db


class Tier(str, enum.Enum):
    FREE = "FREE"
    PRO = "PRO"
    PREMIUM = "PREMIUM"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    INCOMPLETE = "INCOMPLETE"
    TRIALING = "TRIALING"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Subscription(db.Model):
    __tablename__ = "subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    tier = db.Column(
        db.Enum(Tier, name="subscription_tier", native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=Tier.FREE,
    )
    status = db.Column(
        db.Enum(SubscriptionStatus, name="subscription_status", native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        index=True,
        default=SubscriptionStatus.ACTIVE,
    )

    # Join key before the Stripe subscription exists
    stripe_customer_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    # Join key once the subscription is confirmed
    stripe_subscription_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    stripe_price_id = db.Column(db.String(64), nullable=True, index=True)

    current_period_start = db.Column(db.DateTime(timezone=True), nullable=True)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    cancel_at_period_end = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    user = db.relationship("User", back_populates="subscription")
    invoices = db.relationship("Invoice", back_populates="subscription", order_by="Invoice.id")

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_subscriptions_user_id"),
    )

    def __repr__(self) -> str:
        return f"<Subscription id={self.id} user_id={self.user_id} tier={self.tier} status={self.status}>"
