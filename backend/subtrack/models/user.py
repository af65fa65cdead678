"""Identity model: login credentials, role and active flag."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flask import current_app, has_app_context
from sqlalchemy import Boolean, Enum, Index, String, UniqueConstraint, true
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from werkzeug.security import check_password_hash, generate_password_hash

from subtrack.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin
from .enums import Role

if TYPE_CHECKING:
    from .refresh_session import RefreshSession

DEFAULT_HASH_METHOD = "scrypt:32768:8:1"
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50


def _hash_method() -> str:
    """Return the configured werkzeug hashing method."""
    if has_app_context():
        return str(current_app.config.get("PASSWORD_HASH_METHOD", DEFAULT_HASH_METHOD))
    return DEFAULT_HASH_METHOD


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authenticated principal of the subscription tracker.

    Fields
    ------
    name : str
        Display name, 2 to 50 characters after trimming.
    email : str
        Login email. Stored normalized (lowercase, trimmed) and unique.
    password_hash : str
        Salted adaptive hash (write-only setter via ``password``).
    role : Role
        Access role, ``USER`` on sign-up.
    active : bool
        Deactivated identities cannot sign in or refresh.
    sessions : list[RefreshSession]
        Refresh sessions ordered by issue time.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="user_role", native_enum=False, length=20),
        nullable=False,
        default=Role.USER,
    )
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    sessions: Mapped[list[RefreshSession]] = relationship(
        back_populates="user",
        order_by="RefreshSession.issued_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("ix_users_role", "role"),
    )

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        """
        Hash and set the password.

        :param raw: Plain text password to hash.
        :type raw: str
        """
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        self.password_hash = generate_password_hash(raw, method=_hash_method())

    def verify_password(self, raw: str) -> bool:
        """
        Verify a password against the stored hash in constant time.

        :param raw: Plain text password candidate.
        :type raw: str
        :returns: ``True`` if it matches; otherwise ``False``.
        :rtype: bool
        """
        if not self.password_hash:
            return False
        return bool(check_password_hash(self.password_hash, raw))

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and validate email.

        :raises ValueError: If email is missing or malformed.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = normalize_email(value)
        # Minimal sanity check; full validation happens at API layer.
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("name")
    def _normalize_name(self, key: str, value: str) -> str:
        """Trim the display name and enforce its length bounds."""
        if not isinstance(value, str):
            raise ValueError("Name is required.")
        v = value.strip()
        if not NAME_MIN_LENGTH <= len(v) <= NAME_MAX_LENGTH:
            raise ValueError(
                f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters."
            )
        return v

    @validates("role")
    def _coerce_role(self, key: str, value: Role | str) -> Role:
        """Accept enum members or their string values."""
        return value if isinstance(value, Role) else Role(value)


def normalize_email(value: str) -> str:
    """Lowercase and trim an email for storage and lookups."""
    return value.strip().lower()
