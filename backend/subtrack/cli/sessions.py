"""Flask CLI commands for refresh session maintenance."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from subtrack.infra.sql.sql_session_store import SQLAlchemySessionStore

LOGGER = logging.getLogger(__name__)


def _echo_stats(label: str, store: SQLAlchemySessionStore) -> None:
    stats = store.stats()
    click.echo(f"{label}:")
    click.echo(f"  identities  {stats.total_identities:>6}")
    click.echo(f"  sessions    {stats.total_sessions:>6}")
    click.echo(f"  active      {stats.active_sessions:>6}")
    click.echo(f"  expired     {stats.expired_sessions:>6}")


@click.group("sessions")
def sessions_cli() -> None:
    """Refresh session maintenance commands."""


@sessions_cli.command("sweep")
@click.option(
    "--stats/--no-stats", "show_stats", default=False, help="Print totals around the sweep."
)
@with_appcontext
def sweep_command(show_stats: bool) -> None:
    """Delete every expired refresh session (run from cron or a scheduler)."""
    store = SQLAlchemySessionStore()
    if show_stats:
        _echo_stats("Before", store)
    removed = store.sweep_expired()
    LOGGER.info(
        "sessions.sweep removed=%s", removed, extra={"event": "session.swept", "removed": removed}
    )
    click.echo(f"Removed {removed} expired session(s).")
    if show_stats:
        _echo_stats("After", store)


@sessions_cli.command("stats")
@with_appcontext
def stats_command() -> None:
    """Print identity and session totals."""
    _echo_stats("Session stats", SQLAlchemySessionStore())
