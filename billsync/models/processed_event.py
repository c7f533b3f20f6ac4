from sqlalchemy import func
from billsync.extensions import db

class ProcessedEvent(db.Model):
    __tablename__ = "processed_events"

    id = db.Column(db.Integer, primary_key=True)
    stripe_event_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    type = db.Column(db.String(80), nullable=False, index=True)

    processed_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    def __repr__(self) -> str:
        return f"<ProcessedEvent stripe_event_id={self.stripe_event_id!r} type={self.type!r}>"
