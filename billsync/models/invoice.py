from sqlalchemy import func
from billsync.extensions import db

class Invoice(db.Model):
    """Append-only record of a Stripe invoice seen through webhooks."""
    __tablename__ = "invoices"

    id = db.Column(db.Integer, primary_key=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey("subscriptions.id", ondelete="RESTRICT"), nullable=False, index=True)
    stripe_invoice_id = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Minor currency units, as reported by Stripe
    amount = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=True)
    status = db.Column(db.String(32), nullable=False, default="unknown")
    invoice_url = db.Column(db.String(1024), nullable=True)
    pdf_url = db.Column(db.String(1024), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    subscription = db.relationship("Subscription", back_populates="invoices")

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} stripe_invoice_id={self.stripe_invoice_id!r} amount={self.amount} status={self.status!r}>"
