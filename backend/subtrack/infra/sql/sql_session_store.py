# comments in English; reST docstrings
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from subtrack.core.logger import log_event
from subtrack.models.base import as_utc, utcnow
from subtrack.models.refresh_session import RefreshSession
from subtrack.services._shared.ports import (
    RotationOutcome,
    RotationResult,
    SessionRecordView,
    SessionStats,
    SessionStore,
    generate_refresh_token,
)
from subtrack.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)


def _view(record: RefreshSession) -> SessionRecordView:
    return SessionRecordView(
        token=record.token,
        identity_id=record.user_id,
        issued_at=as_utc(record.issued_at),
        expires_at=as_utc(record.expires_at),
    )


@dataclass(slots=True)
class SQLAlchemySessionStore(SessionStore):
    """
    Relational refresh session store with atomic rotation.

    Each public method runs in its own :class:`SQLAlchemyUnitOfWork`, so it is
    one transaction. Rotation relies on a conditional ``DELETE``: the database
    decides which of two concurrent callers consumes the token.

    :param token_factory: Callable producing new opaque tokens.
    :param clock: Callable returning the aware UTC "now".
    """

    token_factory: Callable[[], str] = field(default=generate_refresh_token)
    clock: Callable[[], datetime] = field(default=utcnow)

    # -------------------- API ------------------------

    def grant(
        self, identity_id: int, ttl: timedelta, *, token: str | None = None
    ) -> SessionRecordView:
        now = self.clock()
        with SQLAlchemyUnitOfWork() as uow:
            record = uow.sessions.create(
                user_id=identity_id,
                token=token or self.token_factory(),
                issued_at=now,
                expires_at=now + ttl,
            )
            view = _view(record)
        log_event(log, "session.granted", identity_id=identity_id)
        return view

    def rotate(self, old_token: str, new_token: str, ttl: timedelta) -> RotationResult:
        """
        Consume ``old_token`` and store ``new_token`` in one transaction.

        Outcomes:

        - ``OK``: the token was live and its owner active; a new record exists.
        - ``NOT_FOUND``: unknown token, or another caller consumed it first.
        - ``EXPIRED``: ``expires_at <= now``; the stale record stays for the sweeper.
        - ``INACTIVE``: the owner is deactivated; nothing is consumed.
        """
        now = self.clock()
        with SQLAlchemyUnitOfWork() as uow:
            found = uow.sessions.find_with_owner(old_token)
            if found is None:
                return RotationResult(RotationOutcome.NOT_FOUND)
            record, owner = found
            identity_id, role = owner.id, owner.role

            if uow.sessions.consume_live(old_token, now) != 1:
                if record.is_expired(now):
                    outcome = RotationOutcome.EXPIRED
                elif not owner.active:
                    outcome = RotationOutcome.INACTIVE
                else:
                    # Lost the race: the token was consumed between the read and the delete.
                    outcome = RotationOutcome.NOT_FOUND
                return RotationResult(outcome, identity_id=identity_id, role=role)

            fresh = uow.sessions.create(
                user_id=identity_id,
                token=new_token,
                issued_at=now,
                expires_at=now + ttl,
            )
            view = _view(fresh)

        self.sweep_expired_quietly(identity_id)
        return RotationResult(RotationOutcome.OK, identity_id=identity_id, role=role, record=view)

    def revoke(self, token: str, identity_id: int | None = None) -> bool:
        with SQLAlchemyUnitOfWork() as uow:
            removed = uow.sessions.delete_token(token, user_id=identity_id)
        return removed > 0

    def revoke_all(self, identity_id: int) -> int:
        with SQLAlchemyUnitOfWork() as uow:
            removed = uow.sessions.delete_for_user(identity_id)
        log_event(log, "session.revoked_all", identity_id=identity_id, removed=removed)
        return removed

    def sweep_expired(self, identity_id: int | None = None) -> int:
        now = self.clock()
        with SQLAlchemyUnitOfWork() as uow:
            removed = uow.sessions.delete_expired(now, user_id=identity_id)
        if removed:
            log_event(log, "session.swept", identity_id=identity_id, removed=removed)
        return removed

    def list_for_identity(self, identity_id: int) -> list[SessionRecordView]:
        now = self.clock()
        with SQLAlchemyUnitOfWork() as uow:
            return [_view(r) for r in uow.sessions.list_live(identity_id, now)]

    def stats(self) -> SessionStats:
        now = self.clock()
        with SQLAlchemyUnitOfWork() as uow:
            identities = uow.users.count()
            counts = uow.sessions.counts(now)
        return SessionStats(
            total_identities=identities,
            total_sessions=counts.total,
            active_sessions=counts.active,
            expired_sessions=counts.expired,
        )

    def sweep_expired_quietly(self, identity_id: int) -> int:
        """Opportunistic per-identity cleanup after sign-in and rotation.

        Failures never fail the caller: they are logged and reported as 0.
        """
        try:
            return self.sweep_expired(identity_id)
        except SQLAlchemyError:
            log.warning(
                "session.sweep_failed identity_id=%s",
                identity_id,
                exc_info=True,
                extra={"event": "session.sweep_failed", "identity_id": identity_id},
            )
            return 0
