"""DTOs for the audit recorder and its query surface."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from subtrack.models.audit import AuditEntry
from subtrack.models.base import as_utc
from subtrack.models.enums import AuditAction, TargetType


@dataclass(frozen=True, slots=True)
class AuditEntryView:
    """
    Read-model of one audit entry.

    :param id: Entry id.
    :param actor_id: Identity that performed the action.
    :param action: What happened.
    :param target_type: Kind of resource affected.
    :param target_id: Affected resource id, when any.
    :param ip: Client address, when known.
    :param user_agent: Client user agent, when known.
    :param metadata: Free-form key/value details.
    :param created_at: Insert time (UTC).
    """

    id: int
    actor_id: int
    action: AuditAction
    target_type: TargetType
    target_id: str | None
    ip: str | None
    user_agent: str | None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, entry: AuditEntry) -> AuditEntryView:
        return cls(
            id=entry.id,
            actor_id=entry.actor_id,
            action=entry.action,
            target_type=entry.target_type,
            target_id=entry.target_id,
            ip=entry.ip,
            user_agent=entry.user_agent,
            metadata=dict(entry.details or {}),
            created_at=as_utc(entry.created_at) if entry.created_at else None,
        )


@dataclass(frozen=True, slots=True)
class AuditPage:
    """One page of audit entries, newest first."""

    items: list[AuditEntryView]
    total: int
    page: int
    limit: int

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1
