"""CLI tools for vault emergency access operations."""

import asyncio
import logging
from uuid import UUID

import click
from sqlalchemy import func

from vault_api.core.errors import VerificationError
from vault_api.db.models import User
from vault_api.db.session import SessionLocal
from vault_api.services import inactivity_service


@click.group()
def cli():
    """Family Vault CLI tools."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@cli.command()
@click.option("--concurrency", type=int, default=None, help="Owners processed in parallel")
def check_inactivity(concurrency: int | None):
    """
    Run the inactivity monitor once.

    Same work as POST /internal/scheduled/inactivity-check, for cron hosts
    that prefer a command.

    Example:
        python -m vault_api.cli check-inactivity
    """
    with SessionLocal() as db:
        result = asyncio.run(
            inactivity_service.run_inactivity_check(
                db, session_factory=SessionLocal, max_concurrency=concurrency
            )
        )

    click.echo(f"✓ Processed {len(result.processed_users)} owners (run {result.run_id})")
    for owner_id in result.processed_users:
        click.echo(f"  {owner_id}")
    if result.failed_users:
        click.echo(f"❌ {len(result.failed_users)} owners failed, see logs")
        raise SystemExit(1)


@cli.command()
@click.option("--email", required=True, help="Owner email address")
def record_activity(email: str):
    """
    Mark an owner as active now (starts a new inactivity episode).

    Example:
        python -m vault_api.cli record-activity --email "owner@example.com"
    """
    with SessionLocal() as db:
        user = db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
        if not user:
            click.echo(f"❌ No owner with email {email}")
            raise SystemExit(1)
        trigger = inactivity_service.record_activity(db, user.id)
        click.echo(f"✓ Activity recorded for {user.id} at {trigger.last_activity_at.isoformat()}")


@cli.command()
@click.argument("owner_id", type=click.UUID)
def revoke_emergency_access(owner_id: UUID):
    """Close emergency access for an owner who has returned."""
    with SessionLocal() as db:
        try:
            inactivity_service.revoke_emergency_access(db, owner_id)
        except VerificationError as exc:
            click.echo(f"❌ {exc.message}")
            raise SystemExit(1)
    click.echo(f"✓ Emergency access revoked for {owner_id}")


if __name__ == "__main__":
    cli()
