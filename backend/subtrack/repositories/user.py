"""User repository for identity lookups."""

from __future__ import annotations

from typing import cast

from sqlalchemy import func, select

from subtrack.models.enums import Role
from subtrack.models.user import User, normalize_email
from subtrack.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It NEVER handles tokens or sessions; only DB-level identity access.
    """

    model = User

    # ---------------------------- Whitelists ----------------------------

    def _sortable_fields(self):
        return {
            "id": User.id,
            "email": User.email,
            "name": User.name,
            "role": User.role,
            "created_at": User.created_at,
        }

    def _filterable_fields(self):
        return {
            "role": User.role,
            "active": User.active,
        }

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == normalize_email(email))
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str, *, exclude_id: int | None = None) -> bool:
        """Return ``True`` when another user already owns ``email``.

        :param email: Email address to normalise and search.
        :param exclude_id: Identity to ignore (the one being updated).
        """
        stmt = select(User.id).where(User.email == normalize_email(email))
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        return self.session.execute(stmt).first() is not None

    # ---------------------------- Privileged mutations ----------------------------

    def set_role(self, user: User, role: Role) -> User:
        """Assign ``role`` and flush. Authorization happens in the service."""
        user.role = role
        self.flush()
        return user

    def set_active(self, user: User, active: bool) -> User:
        """Toggle the active flag and flush."""
        user.active = bool(active)
        self.flush()
        return user

    def set_password(self, user: User, new_password: str) -> None:
        """Hash and store a new password (model setter hashes)."""
        user.password = new_password
        self.flush()

    def count(self) -> int:
        """Total number of identities."""
        return int(self.session.execute(select(func.count(User.id))).scalar_one())
