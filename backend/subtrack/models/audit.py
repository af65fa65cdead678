"""Append-only audit trail of privileged and security-relevant actions."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Mapped, ORMExecuteState, Session, mapped_column, validates

from subtrack.core.extensions import db
from subtrack.services._shared.errors import AuditAppendOnlyViolation

from .base import PKMixin, ReprMixin, utcnow
from .enums import AuditAction, TargetType

USER_AGENT_MAX_LENGTH = 500
IP_MAX_LENGTH = 45  # IPv6 with zone-free textual form

_RAW_AUDIT_DML = re.compile(
    r"^\s*(?:update|delete\s+from|truncate(?:\s+table)?)\s+[\"`]?audit_entries\b",
    re.IGNORECASE,
)


class AuditEntry(PKMixin, ReprMixin, db.Model):
    """
    Immutable record of who did what to which resource.

    ``actor_id`` is a plain integer, not a foreign key, so entries outlive the
    identity they reference. Rows are insert-only: ORM updates and deletes, ORM
    bulk DML and raw ``UPDATE``/``DELETE`` statements all raise
    :class:`~subtrack.services._shared.errors.AuditAppendOnlyViolation`.

    Fields
    ------
    actor_id : int
        Identity that performed the action (``0`` for system jobs).
    action : AuditAction
        What happened.
    target_type : TargetType
        Kind of resource affected.
    target_id : str | None
        Identifier of the affected resource, when any.
    ip : str | None
        Client address (max 45 chars).
    user_agent : str | None
        Client user agent, truncated to 500 chars.
    details : dict
        Free-form key/value metadata (column ``metadata``).
    created_at : datetime
        Insert time (UTC).
    """

    __tablename__ = "audit_entries"

    actor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, name="audit_action", native_enum=False, length=32),
        nullable=False,
    )
    target_type: Mapped[TargetType] = mapped_column(
        Enum(TargetType, name="audit_target_type", native_enum=False, length=16),
        nullable=False,
    )
    target_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(IP_MAX_LENGTH), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(USER_AGENT_MAX_LENGTH), nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("ix_audit_entries_actor_created", "actor_id", "created_at"),
        Index("ix_audit_entries_action_created", "action", "created_at"),
        Index("ix_audit_entries_target_created", "target_type", "target_id", "created_at"),
        Index("ix_audit_entries_created_at", "created_at"),
    )

    @validates("user_agent")
    def _truncate_user_agent(self, key: str, value: str | None) -> str | None:
        if value is None:
            return None
        return value[:USER_AGENT_MAX_LENGTH]

    @validates("ip")
    def _bound_ip(self, key: str, value: str | None) -> str | None:
        if not value:
            return None
        return value[:IP_MAX_LENGTH]


# --------------------------------------------------------------------------- #
# Append-only guards
# --------------------------------------------------------------------------- #


@event.listens_for(AuditEntry, "before_update")
def _reject_update(mapper, connection, target) -> None:
    raise AuditAppendOnlyViolation("modified")


@event.listens_for(AuditEntry, "before_delete")
def _reject_delete(mapper, connection, target) -> None:
    raise AuditAppendOnlyViolation("deleted")


@event.listens_for(Session, "do_orm_execute")
def _reject_bulk_dml(state: ORMExecuteState) -> None:
    """Block ``session.execute(update(AuditEntry))`` and friends."""
    if not (state.is_update or state.is_delete):
        return
    if any(m.class_ is AuditEntry for m in state.all_mappers):
        raise AuditAppendOnlyViolation("deleted" if state.is_delete else "modified")


@event.listens_for(Engine, "before_cursor_execute")
def _reject_raw_dml(conn, cursor, statement, parameters, context, executemany) -> None:
    """Last line of defence for Core or textual SQL touching ``audit_entries``."""
    if statement and _RAW_AUDIT_DML.match(statement):
        operation = "modified" if statement.lstrip()[:6].lower() == "update" else "deleted"
        raise AuditAppendOnlyViolation(operation)
