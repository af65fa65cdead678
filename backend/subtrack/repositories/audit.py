"""Audit entry repository: insert and newest-first queries only."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import Select, select

from subtrack.models.audit import AuditEntry
from subtrack.repositories.base import BaseRepository, Page, paginate_select


class AuditEntryRepository(BaseRepository[AuditEntry]):
    """Persistence-only repository for :class:`AuditEntry`.

    There is deliberately no update or delete API; the model guards reject
    both anyway.
    """

    model = AuditEntry

    def _filterable_fields(self):
        return {
            "actor_id": AuditEntry.actor_id,
            "action": AuditEntry.action,
            "target_type": AuditEntry.target_type,
            "target_id": AuditEntry.target_id,
        }

    def delete(self, instance: AuditEntry) -> None:  # pragma: no cover - guard
        raise NotImplementedError("Audit entries are append-only.")

    def update(self, instance: AuditEntry, **fields: Any) -> AuditEntry:  # pragma: no cover
        raise NotImplementedError("Audit entries are append-only.")

    def _newest_first(self, filters: Mapping[str, Any] | None) -> Select[Any]:
        stmt: Select[Any] = select(AuditEntry)
        stmt = self._apply_equality_filters(stmt, filters)
        return stmt.order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())

    def search(
        self,
        *,
        filters: Mapping[str, Any] | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> Page[AuditEntry]:
        """
        Return one page of entries matching ``filters``, newest first.

        :param filters: Equality filters on actor, action, target type or id.
        :param page: 1-based page number.
        :param limit: Page size.
        :returns: Page with items and total.
        """
        items, total = paginate_select(
            self.session, self._newest_first(filters), page=page, limit=limit
        )
        return Page(items=items, total=total, page=page, limit=limit)
