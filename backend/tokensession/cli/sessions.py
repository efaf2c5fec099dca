"""Flask CLI commands for device session housekeeping."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from tokensession.core.sessions import get_session_manager
from tokensession.services._shared.errors import StorageError
from tokensession.services.sessions import utc_now
from tokensession.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork

LOGGER = logging.getLogger(__name__)


@click.group("sessions")
def sessions_cli() -> None:
    """Inspect and clean up device sessions."""


@sessions_cli.command("purge-expired")
@with_appcontext
def purge_expired_command() -> None:
    """Delete every device session whose expiry has passed."""
    try:
        removed = get_session_manager().purge_expired()
    except StorageError as exc:
        raise click.ClickException(f"Purge failed: {exc}") from exc
    click.echo(f"Purged {removed} expired session(s).")


@sessions_cli.command("list")
@click.argument("email")
@with_appcontext
def list_command(email: str) -> None:
    """Print the device sessions of the principal registered as EMAIL."""
    with SQLAlchemyReadOnlyUnitOfWork() as uow:
        user = uow.users.get_by_email(email)
        if user is None:
            raise click.ClickException(f"No principal registered as {email!r}.")
        principal_id = str(user.id)

    sessions = get_session_manager().list_sessions(principal_id)
    if not sessions:
        click.echo("  (no sessions)")
        return
    now = utc_now()
    width = max(len(s.client_id) for s in sessions)
    for s in sessions:
        state = "expired" if s.is_expired(now) else "active"
        last_used = s.last_used_at.isoformat() if s.last_used_at else "never"
        click.echo(
            f"  {s.client_id.ljust(width)}  {state:<7}  "
            f"expiry={s.expiry.isoformat()}  last_used={last_used}"
        )
    LOGGER.debug("cli.sessions_listed", extra={"principal_id": principal_id})
