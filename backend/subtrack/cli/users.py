"""Flask CLI commands for bootstrapping privileged identities."""

from __future__ import annotations

import click
from flask.cli import with_appcontext

from subtrack.infra.sql.sql_session_store import SQLAlchemySessionStore
from subtrack.models.enums import AuditAction, Role, TargetType
from subtrack.services._shared.base import ServiceContext
from subtrack.services._shared.errors import ServiceError
from subtrack.services.audit.service import SYSTEM_ACTOR_ID, AuditContext, AuditRecorder
from subtrack.services.identity.dto import RegisterIn
from subtrack.services.identity.service import IdentityService
from subtrack.services.users.service import UserAdminService


@click.group("users")
def users_cli() -> None:
    """Identity administration commands."""


@users_cli.command("create-admin")
@click.argument("email")
@click.option("--name", default="Administrator", show_default=True, help="Display name.")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Initial password (prompted when omitted).",
)
@click.option(
    "--role",
    type=click.Choice([r.value for r in Role], case_sensitive=False),
    default=Role.SUPER_ADMIN.value,
    show_default=True,
)
@with_appcontext
def create_admin_command(email: str, name: str, password: str, role: str) -> None:
    """Create an identity with ROLE as the system actor."""
    ctx = ServiceContext(actor_id=SYSTEM_ACTOR_ID, actor_role=Role.SUPER_ADMIN)
    audit = AuditRecorder(ctx=ctx)
    context = AuditContext(user_agent="flask-cli")
    try:
        identity = IdentityService(ctx=ctx).register(
            RegisterIn(name=name, email=email, password=password)
        )
        audit.record(
            SYSTEM_ACTOR_ID,
            AuditAction.CREATE_USER,
            TargetType.USER,
            identity.id,
            metadata={"email": identity.email, "source": "cli"},
            context=context,
        )
        target = Role(role.upper())
        if target is not identity.role:
            admin = UserAdminService(sessions=SQLAlchemySessionStore(), audit=audit, ctx=ctx)
            admin.change_role(identity.id, target)
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created {target.value} {identity.email} (id={identity.id}).")
