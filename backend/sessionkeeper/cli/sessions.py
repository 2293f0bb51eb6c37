"""Flask CLI commands for inspecting and revoking sessions."""

from __future__ import annotations

import json
import logging

import click
from flask.cli import with_appcontext

from sessionkeeper.core.extensions import get_session_service
from sessionkeeper.schemas import LockoutStatusSchema, SessionSchema
from sessionkeeper.services._shared.errors import SessionError
from sessionkeeper.services._shared.ports import Health

LOGGER = logging.getLogger(__name__)


def _fail(exc: SessionError) -> click.ClickException:
    hint = " (retryable)" if exc.retryable else ""
    return click.ClickException(f"{exc.code}: {exc.message}{hint}")


@click.group("sessions")
@click.option("--verbose", is_flag=True, help="Enable verbose logging for session commands.")
def sessions_cli(verbose: bool) -> None:
    """Session store maintenance commands."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.getLogger("sessionkeeper.services.sessions").setLevel(level)
    LOGGER.setLevel(level)


@sessions_cli.command("health")
@with_appcontext
def health_command() -> None:
    """Probe the store and print its health."""
    report = get_session_service().health()
    latency = "-" if report.latency_ms is None else f"{report.latency_ms:.1f}ms"
    click.echo(f"store={report.status.value} latency={latency}")
    if report.detail:
        click.echo(f"detail={report.detail}")
    if report.status is Health.UNAVAILABLE:
        raise click.exceptions.Exit(1)


@sessions_cli.command("list")
@click.argument("user_id")
@with_appcontext
def list_command(user_id: str) -> None:
    """List USER_ID's live sessions, oldest first."""
    try:
        sessions = get_session_service().list_sessions(user_id)
    except SessionError as exc:
        raise _fail(exc) from exc
    if not sessions:
        click.echo("  (no sessions)")
        return
    for row in SessionSchema(many=True).dump(sessions):
        click.echo(
            f"  created={row['created_at']}  expires={row['expires_at']}"
            f"  ip={row['ip_address'] or '-'}  device={row['device_info'] or '-'}"
        )


@sessions_cli.command("revoke-all")
@click.argument("user_id")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@with_appcontext
def revoke_all_command(user_id: str, yes: bool) -> None:
    """Revoke every refresh session of USER_ID."""
    if not yes:
        click.confirm(f"Revoke all sessions of user {user_id!r}?", abort=True)
    try:
        revoked = get_session_service().logout_all(user_id)
    except SessionError as exc:
        raise _fail(exc) from exc
    LOGGER.info("Revoked %d session(s) for user %s", revoked, user_id)
    click.echo(f"revoked={revoked}")


@sessions_cli.command("unlock")
@click.argument("account")
@with_appcontext
def unlock_command(account: str) -> None:
    """Clear the failure counter and lock of ACCOUNT."""
    try:
        get_session_service().record_successful_login(account)
    except SessionError as exc:
        raise _fail(exc) from exc
    click.echo(f"unlocked={account}")


@sessions_cli.command("lockout")
@click.argument("account")
@with_appcontext
def lockout_command(account: str) -> None:
    """Print the lockout status of ACCOUNT as JSON."""
    try:
        status = get_session_service().lockout_status(account)
    except SessionError as exc:
        raise _fail(exc) from exc
    click.echo(json.dumps(LockoutStatusSchema().dump(status)))
