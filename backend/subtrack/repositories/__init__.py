"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from subtrack.repositories.audit import AuditEntryRepository
from subtrack.repositories.base import (
    BaseRepository,
    Page,
    Pagination,
    apply_sorting,
    paginate_select,
)
from subtrack.repositories.refresh_session import RefreshSessionRepository, SessionCounts
from subtrack.repositories.user import UserRepository

__all__ = [
    # Base
    "BaseRepository",
    "Page",
    "Pagination",
    "paginate_select",
    "apply_sorting",
    # Domain
    "AuditEntryRepository",
    "RefreshSessionRepository",
    "SessionCounts",
    "UserRepository",
]
