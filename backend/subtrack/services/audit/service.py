"""
AuditRecorder
=============

Append-only audit trail writer plus its read-only query surface.

Recording is fire-and-forget by contract: :meth:`AuditRecorder.record` runs
after the business mutation committed, in its own unit of work, and never
raises. A failed write is rolled back, logged with its traceback and reported
to the caller as ``None``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from flask import has_request_context, request

from subtrack.core.logger import log_event
from subtrack.models.audit import AuditEntry
from subtrack.models.enums import AuditAction, TargetType
from subtrack.services._shared.base import BaseService, ServiceContext
from subtrack.services._shared.errors import ValidationError
from subtrack.services.audit.dto import AuditEntryView, AuditPage

log = logging.getLogger(__name__)

#: Actor id used for entries written by system jobs (CLI, schedulers).
SYSTEM_ACTOR_ID = 0


@dataclass(frozen=True, slots=True)
class AuditContext:
    """
    Best-effort client information attached to an entry.

    :param ip: Client address (``request.remote_addr`` after ProxyFix).
    :param user_agent: ``User-Agent`` header.
    """

    ip: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_request(cls) -> AuditContext:
        """Read the current Flask request; empty outside a request."""
        if not has_request_context():
            return cls()
        return cls(
            ip=request.remote_addr or None,
            user_agent=request.headers.get("User-Agent") or None,
        )

    @classmethod
    def from_service_context(cls, ctx: ServiceContext) -> AuditContext:
        return cls(ip=ctx.ip, user_agent=ctx.user_agent)


def _coerce_filters(filters: Mapping[str, Any] | None) -> dict[str, Any]:
    """Validate enum filters so unknown values are rejected instead of matching nothing."""
    out: dict[str, Any] = {}
    for key, value in (filters or {}).items():
        if value is None:
            continue
        if key == "action" and not isinstance(value, AuditAction):
            try:
                value = AuditAction(str(value).strip().upper())
            except ValueError as exc:
                raise ValidationError("action", f"Unknown audit action: {value!r}") from exc
        elif key == "target_type" and not isinstance(value, TargetType):
            try:
                value = TargetType(str(value).strip().upper())
            except ValueError as exc:
                raise ValidationError("targetType", f"Unknown target type: {value!r}") from exc
        elif key == "target_id":
            value = str(value)
        out[key] = value
    return out


class AuditRecorder(BaseService):
    """
    Application service writing and reading :class:`AuditEntry` rows.

    Responsibilities
    ----------------
    - Persist one entry per privileged action, never failing the caller.
    - Serve newest-first, paginated reads through a read-only unit of work.
    """

    DEFAULT_LIMIT = 50

    # --------------------------------------------------------------------- #
    # Write path
    # --------------------------------------------------------------------- #

    def record(
        self,
        actor_id: int,
        action: AuditAction,
        target_type: TargetType,
        target_id: str | int | None = None,
        metadata: Mapping[str, Any] | None = None,
        context: AuditContext | None = None,
    ) -> AuditEntryView | None:
        """
        Append one audit entry.

        :param actor_id: Identity performing the action (``0`` for system jobs).
        :param action: Action performed.
        :param target_type: Kind of resource affected.
        :param target_id: Affected resource id, when any.
        :param metadata: Free-form key/value details.
        :param context: Client info; falls back to the service context, then
            to the current request.
        :returns: The stored entry, or ``None`` when persistence failed.
        """
        if context is None:
            if self.ctx.ip or self.ctx.user_agent:
                context = AuditContext.from_service_context(self.ctx)
            else:
                context = AuditContext.from_request()
        try:
            with self.rw_uow() as uow:
                entry = uow.audit.add(
                    AuditEntry(
                        actor_id=actor_id,
                        action=action,
                        target_type=target_type,
                        target_id=str(target_id) if target_id is not None else None,
                        ip=context.ip,
                        user_agent=context.user_agent,
                        details=dict(metadata or {}),
                    )
                )
                view = AuditEntryView.from_model(entry)
        except Exception:
            log.error(
                "audit.write_failed action=%s actor_id=%s",
                getattr(action, "value", action),
                actor_id,
                exc_info=True,
                extra={
                    "event": "audit.write_failed",
                    "actor_id": actor_id,
                    "action": getattr(action, "value", action),
                },
            )
            return None

        log_event(log, "audit.recorded", actor_id=actor_id, action=action.value)
        return view

    # --------------------------------------------------------------------- #
    # Read path
    # --------------------------------------------------------------------- #

    def recent(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        page: int = 1,
        limit: int = DEFAULT_LIMIT,
    ) -> AuditPage:
        """
        Newest-first page of entries matching equality ``filters``.

        :param filters: Any of ``actor_id``, ``action``, ``target_type``, ``target_id``.
        :raises ValidationError: For an unknown action or target type.
        """
        pagination = self.ensure_pagination(page=page, limit=limit)
        clean = _coerce_filters(filters)
        with self.ro_uow() as uow:
            result = uow.audit.search(
                filters=clean, page=pagination.page, limit=pagination.limit
            )
            items = [AuditEntryView.from_model(e) for e in result.items]
        return AuditPage(items=items, total=result.total, page=result.page, limit=result.limit)

    def by_actor(self, actor_id: int, *, page: int = 1, limit: int = DEFAULT_LIMIT) -> AuditPage:
        return self.recent({"actor_id": actor_id}, page=page, limit=limit)

    def by_action(
        self, action: AuditAction | str, *, page: int = 1, limit: int = DEFAULT_LIMIT
    ) -> AuditPage:
        return self.recent({"action": action}, page=page, limit=limit)

    def by_target(
        self,
        target_type: TargetType | str,
        target_id: str | int | None = None,
        *,
        page: int = 1,
        limit: int = DEFAULT_LIMIT,
    ) -> AuditPage:
        return self.recent(
            {"target_type": target_type, "target_id": target_id}, page=page, limit=limit
        )
