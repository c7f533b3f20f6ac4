from datetime import datetime, timedelta, timezone
from billsync.extensions import db
from billsync.models import ProcessedEvent, User

def test_users_create(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["users", "create", "--email", "ops@example.com", "--password", "pw"])
    assert result.exit_code == 0, result.output
    assert "User created" in result.output
    with app.app_context():
        assert User.query.filter_by(email="ops@example.com").one().check_password("pw")

def test_users_create_refuses_duplicates(app):
    runner = app.test_cli_runner()
    runner.invoke(args=["users", "create", "--email", "dup@example.com", "--password", "pw"])
    result = runner.invoke(args=["users", "create", "--email", "dup@example.com", "--password", "pw"])
    assert result.exit_code != 0
    assert "already exists" in result.output

def test_billing_limits(app):
    result = app.test_cli_runner().invoke(args=["billing", "limits", "--tier", "premium"])
    assert result.exit_code == 0, result.output
    assert "card_limit=unlimited" in result.output

def test_prune_events_keeps_recent_records(app):
    now = datetime.now(timezone.utc)
    with app.app_context():
        db.session.add_all([
            ProcessedEvent(stripe_event_id="evt_old", type="invoice.paid", processed_at=now - timedelta(days=200)),
            ProcessedEvent(stripe_event_id="evt_new", type="invoice.paid", processed_at=now - timedelta(days=1)),
        ])
        db.session.commit()

    result = app.test_cli_runner().invoke(args=["billing", "prune-events", "--older-than-days", "90"])

    assert result.exit_code == 0, result.output
    assert "Pruned 1" in result.output
    with app.app_context():
        assert [e.stripe_event_id for e in ProcessedEvent.query.all()] == ["evt_new"]
