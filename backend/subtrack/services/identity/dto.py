"""
DTOs for IdentityService.

Data Transfer Objects (DTOs) isolate the service layer from ORM models,
ensuring clear input/output contracts and type safety.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from subtrack.models.base import as_utc
from subtrack.models.enums import Role
from subtrack.models.user import User

# --------------------------------------------------------------------------- #
# Input DTOs
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for sign-up.

    :param name: Display name (2-50 chars).
    :type name: str
    :param email: Login email (normalized to lowercase).
    :type email: str
    :param password: Raw password to be hashed by the model.
    :type password: str
    """

    name: str
    email: str
    password: str


@dataclass(frozen=True, slots=True)
class CredentialsIn:
    """
    Input DTO for credential verification.

    :param email: Login email.
    :type email: str
    :param password: Raw password.
    :type password: str
    """

    email: str
    password: str


@dataclass(frozen=True, slots=True)
class ProfileUpdateIn:
    """
    Input DTO for self-service profile updates.

    Role and active flag are deliberately absent; they have dedicated paths.

    :param name: Optional new display name.
    :type name: str | None
    :param email: Optional new email.
    :type email: str | None
    """

    name: str | None = None
    email: str | None = None


@dataclass(frozen=True, slots=True)
class PasswordChangeIn:
    """
    Input DTO for changing a password.

    :param identity_id: Identity whose password changes.
    :type identity_id: int
    :param new_password: New password (raw).
    :type new_password: str
    :param current_password: Current password, required for self-service.
    :type current_password: str | None
    """

    identity_id: int
    new_password: str
    current_password: str | None = None


# --------------------------------------------------------------------------- #
# Output DTOs
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class IdentityOut:
    """
    Output DTO representing public-safe identity data (never the hash).

    :param id: Identity id.
    :param name: Display name.
    :param email: Normalized email.
    :param role: Current role.
    :param active: Whether the identity may authenticate.
    :param created_at: Creation time (UTC).
    """

    id: int
    name: str
    email: str
    role: Role
    active: bool
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, user: User) -> IdentityOut:
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            active=bool(user.active),
            created_at=as_utc(user.created_at) if user.created_at else None,
        )
