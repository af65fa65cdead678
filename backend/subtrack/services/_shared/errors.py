"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or HTTP
concepts. Each class carries a stable ``kind`` string that clients and logs can
rely on; the translation to RFC 7807 responses lives in
``subtrack/core/errors.py`` (:func:`~subtrack.core.errors.from_service_error`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    PostgreSQL reports the constraint name; SQLite only reports the columns,
    so ``uq_<table>_<column>`` names are also matched as ``<table>.<column>``.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        The name of the database constraint to match (e.g., 'uq_users_email').

    Returns
    -------
    bool
        True if the IntegrityError matches the given constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    name = constraint_name.lower()
    if name in message:
        return True
    if name.startswith("uq_"):
        table, _, column = name[3:].partition("_")
        return bool(column) and f"{table}.{column}" in message
    return False


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - ``kind`` is the stable machine-readable identifier.
    - ``retryable`` tells callers whether the same request may succeed later.
    """

    kind: ClassVar[str] = "service_error"
    retryable: ClassVar[bool] = False


# --------------------------------------------------------------------------- #
# Identity and credentials
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    kind: ClassVar[str] = "not_found"

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} does not exist"


@dataclass(slots=True)
class EmailTakenError(ServiceError):
    """
    Raised when sign-up or a profile update collides with an existing email.

    :param email: Normalized email that is already registered.
    :type email: str
    """

    kind: ClassVar[str] = "email_taken"

    email: str

    def __str__(self) -> str:
        return "Email is already registered"


class InvalidPasswordError(ServiceError):
    """Raised when the supplied password does not match the stored hash."""

    kind: ClassVar[str] = "invalid_password"

    def __str__(self) -> str:
        return "Invalid password"


class AccountInactiveError(ServiceError):
    """Raised when a deactivated identity tries to authenticate or refresh."""

    kind: ClassVar[str] = "account_inactive"

    def __str__(self) -> str:
        return "Account is deactivated"


# --------------------------------------------------------------------------- #
# Tokens
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class TokenExpiredOrInvalidError(ServiceError):
    """
    Raised for unusable access or refresh tokens.

    :param reason: ``"expired"`` or ``"invalid"``.
    :type reason: str
    """

    kind: ClassVar[str] = "token_expired_or_invalid"

    reason: str = "invalid"

    def __str__(self) -> str:
        if self.reason == "expired":
            return "Token has expired"
        return "Invalid or expired token"


class MissingTokenError(ServiceError):
    """Raised when a refresh request carries no refresh token."""

    kind: ClassVar[str] = "missing_token"

    def __str__(self) -> str:
        return "Refresh token is required"


# --------------------------------------------------------------------------- #
# Authorization
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class ForbiddenError(ServiceError):
    """
    Raised when the role hierarchy denies an action.

    :param detail: Short explanation safe for clients.
    :type detail: str
    """

    kind: ClassVar[str] = "forbidden"

    detail: str = "Insufficient permissions"

    def __str__(self) -> str:
        return self.detail


@dataclass(slots=True)
class InvalidRoleError(ServiceError):
    """
    Raised when a role value is not one of the known roles.

    :param value: Rejected input.
    :type value: object
    """

    kind: ClassVar[str] = "invalid_role"

    value: object

    def __str__(self) -> str:
        return f"Invalid role: {self.value!r}"


@dataclass(slots=True)
class ValidationError(ServiceError):
    """
    Raised for business-rule validation failures detected inside services.

    :param field: Offending input field.
    :type field: str
    :param message: Human-readable explanation.
    :type message: str
    """

    kind: ClassVar[str] = "validation_error"

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


# --------------------------------------------------------------------------- #
# Store and audit integrity
# --------------------------------------------------------------------------- #


class AuditAppendOnlyViolation(ServiceError):
    """Raised on any attempt to update or delete an audit entry."""

    kind: ClassVar[str] = "audit_append_only_violation"

    def __init__(self, operation: str = "modified") -> None:
        super().__init__(
            f"Security violation: Audit logs are append-only and cannot be {operation}"
        )


class StoreUnavailableError(ServiceError):
    """Raised when the identity store times out or cannot be reached."""

    kind: ClassVar[str] = "store_unavailable"
    retryable: ClassVar[bool] = True

    def __str__(self) -> str:
        return "Identity store temporarily unavailable"
