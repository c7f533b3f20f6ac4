from datetime import datetime, timedelta, timezone

import click
from flask import current_app
from flask.cli import with_appcontext
from billsync.extensions import db
from billsync.models import User, Tier
from billsync.billing import ledger
from billsync.billing.entitlements import usage_limits

@click.group()
def users():
    """User management."""

@users.command("create")
@click.option("--email", required=True)
@click.option("--password", required=True)
@with_appcontext
def users_create(email, password):
    if db.session.query(User).filter_by(email=email).count():
        raise click.ClickException("User already exists")

    user = User(email=email, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    click.echo(f"User created id={user.id} email={user.email}")

@click.group()
def billing():
    """Billing ops."""

@billing.command("limits")
@click.option("--tier", type=click.Choice([t.value for t in Tier], case_sensitive=False), required=True)
def billing_limits(tier):
    limits = usage_limits(tier.upper())
    for key, value in limits.to_dict().items():
        click.echo(f"{key}={'unlimited' if value == -1 else value}")

@billing.command("prune-events")
@click.option("--older-than-days", type=int, default=None, help="Defaults to PROCESSED_EVENT_RETENTION_DAYS")
@with_appcontext
def billing_prune_events(older_than_days):
    days = older_than_days if older_than_days is not None else current_app.config["PROCESSED_EVENT_RETENTION_DAYS"]
    if days < 1:
        raise click.ClickException("Refused: retention must be at least one day")
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    deleted = ledger.prune(cutoff)
    click.echo(f"Pruned {deleted} processed event(s) older than {days} day(s)")

def register_cli(app):
    app.cli.add_command(users)
    app.cli.add_command(billing)
