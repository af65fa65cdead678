from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, auto
from typing import Protocol

from subtrack.models.enums import Role


class RotationOutcome(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    INACTIVE = auto()


@dataclass(frozen=True, slots=True)
class SessionRecordView:
    """
    Read-model for one refresh session.

    :ivar token: Opaque refresh token.
    :ivar identity_id: Owner identity id.
    :ivar issued_at: Issue time (UTC).
    :ivar expires_at: Absolute expiration (UTC).
    """

    token: str
    identity_id: int
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class RotationResult:
    """
    Result of :meth:`SessionStore.rotate`.

    ``identity_id`` and ``role`` are filled whenever the old token was found;
    ``record`` only on ``OK``.
    """

    outcome: RotationOutcome
    identity_id: int | None = None
    role: Role | None = None
    record: SessionRecordView | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is RotationOutcome.OK


@dataclass(frozen=True, slots=True)
class SessionStats:
    """Operational counters for monitoring and the cleanup CLI."""

    total_identities: int
    total_sessions: int
    active_sessions: int
    expired_sessions: int


class SessionStore(Protocol):
    """
    Stateful store of refresh sessions.

    Every mutation is a single conditional statement; rotation MUST be atomic
    so that two concurrent refreshes with one token cannot both succeed.
    """

    def grant(
        self, identity_id: int, ttl: timedelta, *, token: str | None = None
    ) -> SessionRecordView:
        """Create a new session valid for ``ttl`` (a fresh token unless ``token`` is given)."""
        ...

    def rotate(self, old_token: str, new_token: str, ttl: timedelta) -> RotationResult:
        """Consume ``old_token`` and store ``new_token`` in its place in one transaction."""
        ...

    def revoke(self, token: str, identity_id: int | None = None) -> bool:
        """Remove one session. Absent tokens are a no-op returning ``False``."""
        ...

    def revoke_all(self, identity_id: int) -> int:
        """Remove every session of ``identity_id``; returns how many."""
        ...

    def sweep_expired(self, identity_id: int | None = None) -> int:
        """Remove sessions with ``expires_at <= now`` (all identities when ``None``)."""
        ...

    def sweep_expired_quietly(self, identity_id: int) -> int:
        """Best-effort per-identity sweep; store failures are logged and count as 0."""
        ...

    def list_for_identity(self, identity_id: int) -> list[SessionRecordView]:
        """Live sessions of ``identity_id``, oldest first."""
        ...

    def stats(self) -> SessionStats:
        """Current totals across the store."""
        ...
