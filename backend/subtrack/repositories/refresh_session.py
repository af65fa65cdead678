"""Refresh session repository: conditional consumption and bulk cleanup."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import case, delete, func, select, true
from sqlalchemy.engine import CursorResult

from subtrack.models.refresh_session import RefreshSession
from subtrack.models.user import User
from subtrack.repositories.base import BaseRepository


@dataclass(frozen=True, slots=True)
class SessionCounts:
    """Raw session counters at a point in time."""

    total: int
    active: int
    expired: int


def _rowcount(result: Any) -> int:
    """Extract ``rowcount`` from a DML result."""
    if isinstance(result, CursorResult):
        return max(int(result.rowcount), 0)
    return 0


class RefreshSessionRepository(BaseRepository[RefreshSession]):
    """Persistence-only repository for :class:`RefreshSession`.

    Every destructive method is a single ``DELETE`` statement so concurrent
    callers race inside the database, never in Python.
    """

    model = RefreshSession

    # ---------------------------- Writes ----------------------------

    def create(
        self, *, user_id: int, token: str, issued_at: datetime, expires_at: datetime
    ) -> RefreshSession:
        """Insert a new session row and flush."""
        record = RefreshSession(
            user_id=user_id, token=token, issued_at=issued_at, expires_at=expires_at
        )
        return self.add(record)

    def consume_live(self, token: str, now: datetime) -> int:
        """Delete ``token`` only if it is live and its owner is active.

        This is the compare-and-delete step of refresh rotation: of two
        concurrent callers presenting the same token, exactly one sees ``1``.

        :param token: Refresh token presented by the client.
        :param now: Reference time; ``expires_at == now`` counts as expired.
        :returns: Number of rows deleted (``0`` or ``1``).
        """
        active_owners = select(User.id).where(User.active == true())
        stmt = (
            delete(RefreshSession)
            .where(
                RefreshSession.token == token,
                RefreshSession.expires_at > now,
                RefreshSession.user_id.in_(active_owners),
            )
            .execution_options(synchronize_session=False)
        )
        return _rowcount(self.session.execute(stmt))

    def delete_token(self, token: str, *, user_id: int | None = None) -> int:
        """Delete one token, optionally scoped to its owner."""
        stmt = delete(RefreshSession).where(RefreshSession.token == token)
        if user_id is not None:
            stmt = stmt.where(RefreshSession.user_id == user_id)
        return _rowcount(self.session.execute(stmt.execution_options(synchronize_session=False)))

    def delete_for_user(self, user_id: int) -> int:
        """Delete every session of ``user_id``."""
        stmt = (
            delete(RefreshSession)
            .where(RefreshSession.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return _rowcount(self.session.execute(stmt))

    def delete_expired(self, now: datetime, *, user_id: int | None = None) -> int:
        """Delete sessions with ``expires_at <= now`` (optionally for one user)."""
        stmt = delete(RefreshSession).where(RefreshSession.expires_at <= now)
        if user_id is not None:
            stmt = stmt.where(RefreshSession.user_id == user_id)
        return _rowcount(self.session.execute(stmt.execution_options(synchronize_session=False)))

    # ---------------------------- Reads ----------------------------

    def find_with_owner(self, token: str) -> tuple[RefreshSession, User] | None:
        """Return the session for ``token`` together with its owner."""
        stmt = (
            select(RefreshSession, User)
            .join(User, User.id == RefreshSession.user_id)
            .where(RefreshSession.token == token)
        )
        row = self.session.execute(stmt).first()
        if row is None:
            return None
        return row[0], row[1]

    def list_live(self, user_id: int, now: datetime) -> list[RefreshSession]:
        """List unexpired sessions of ``user_id`` ordered by issue time."""
        stmt = (
            select(RefreshSession)
            .where(RefreshSession.user_id == user_id, RefreshSession.expires_at > now)
            .order_by(RefreshSession.issued_at.asc(), RefreshSession.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def counts(self, now: datetime) -> SessionCounts:
        """Aggregate total, active and expired session counts in one query."""
        stmt = select(
            func.count(RefreshSession.id),
            func.coalesce(func.sum(case((RefreshSession.expires_at > now, 1), else_=0)), 0),
        )
        total, active = self.session.execute(stmt).one()
        total, active = int(total or 0), int(active or 0)
        return SessionCounts(total=total, active=active, expired=total - active)
