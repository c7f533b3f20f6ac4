from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from billsync.extensions import db
from billsync.models import ProcessedEvent


def is_processed(event_id: str) -> bool:
    return (
        db.session.query(ProcessedEvent.id)
        .filter_by(stripe_event_id=event_id)
        .first()
        is not None
    )


def claim(event_id: str, event_type: str) -> bool:
    """
    Insert the ledger row inside the caller's open transaction.

    Must be the first write of that transaction: on a unique-constraint race the
    whole transaction is rolled back and False is returned. The row only becomes
    durable when the caller commits, so a failed handler leaves no trace.
    """
    db.session.add(ProcessedEvent(
        stripe_event_id=event_id,
        type=event_type,
        processed_at=datetime.now(timezone.utc),
    ))
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        return False
    return True


def prune(older_than: datetime) -> int:
    deleted = (
        db.session.query(ProcessedEvent)
        .filter(ProcessedEvent.processed_at < older_than)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
