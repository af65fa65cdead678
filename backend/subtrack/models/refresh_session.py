"""Refresh session records owned by an identity."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from subtrack.core.extensions import db

from .base import PKMixin, ReprMixin, as_utc

if TYPE_CHECKING:
    from .user import User

REFRESH_TOKEN_LENGTH = 128  # 64 random bytes, hex encoded


class RefreshSession(PKMixin, ReprMixin, db.Model):
    """
    One live refresh token of one identity.

    Consumed, revoked or swept records are deleted rather than flagged, so the
    table only ever holds tokens that were live at some point and not yet
    cleaned up.

    Fields
    ------
    user_id : int
        Owning identity (``ON DELETE CASCADE``).
    token : str
        Opaque refresh token, unique across all identities.
    issued_at : datetime
        Issue time (UTC).
    expires_at : datetime
        Expiry (UTC). A record with ``expires_at <= now`` is expired.
    """

    __tablename__ = "refresh_sessions"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(String(REFRESH_TOKEN_LENGTH), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    user: Mapped[User] = relationship(back_populates="sessions")

    __table_args__ = (
        UniqueConstraint("token", name="uq_refresh_sessions_token"),
        CheckConstraint("expires_at > issued_at", name="expiry_after_issue"),
        Index("ix_refresh_sessions_user_id", "user_id"),
        Index("ix_refresh_sessions_expires_at", "expires_at"),
    )

    def is_expired(self, now: datetime) -> bool:
        """
        Return whether the session is expired at ``now`` (boundary inclusive).

        :param now: Aware reference time.
        :type now: datetime
        :rtype: bool
        """
        return as_utc(self.expires_at) <= now
