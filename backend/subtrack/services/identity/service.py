"""
IdentityService
===============

Aggregate service responsible for the ``User`` aggregate:
- Registration with case-insensitive email uniqueness
- Credential verification (no token issuance)
- Profile reads and self-service updates
- Password lifecycle
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError

from subtrack.core.logger import log_event
from subtrack.models.enums import AuditAction, Role, TargetType
from subtrack.models.user import User, normalize_email
from subtrack.repositories.user import UserRepository
from subtrack.services._shared.base import BaseService, ServiceContext
from subtrack.services._shared.errors import (
    AccountInactiveError,
    EmailTakenError,
    ForbiddenError,
    InvalidPasswordError,
    NotFoundError,
    ValidationError,
    violates,
)
from subtrack.services._shared.policies.roles import PRIVILEGED_ROLES, can_manage
from subtrack.services._shared.ports import SessionStore
from subtrack.services.audit.service import AuditRecorder
from subtrack.services.identity.dto import (
    CredentialsIn,
    IdentityOut,
    PasswordChangeIn,
    ProfileUpdateIn,
    RegisterIn,
)

log = logging.getLogger(__name__)


def _assign(user: User, field: str, value: Any) -> None:
    """Run the model validator for ``field`` and surface failures as ``ValidationError``."""
    try:
        setattr(user, field, value)
    except ValueError as exc:
        raise ValidationError(field, str(exc)) from exc


class IdentityService(BaseService):
    """
    Application service for the ``User`` aggregate.

    Responsibilities
    ----------------
    - Register identities ensuring email uniqueness.
    - Verify credentials in the order lookup, active flag, password.
    - Retrieve and update profile fields safely.
    - Manage the password lifecycle (revoking sessions afterwards).
    """

    def __init__(
        self,
        *,
        ctx: ServiceContext | None = None,
        sessions: SessionStore | None = None,
        audit: AuditRecorder | None = None,
    ) -> None:
        """
        :param ctx: Request-scoped context.
        :param sessions: Session store, needed by :meth:`change_password`.
        :param audit: Recorder for profile and password changes.
        """
        super().__init__(ctx=ctx)
        self.sessions = sessions
        self.audit = audit

    # --------------------------------------------------------------------- #
    # Registration
    # --------------------------------------------------------------------- #

    def register(self, dto: RegisterIn, *, role: Role = Role.USER) -> IdentityOut:
        """
        Register a new active identity, with role ``USER`` unless told otherwise.

        Callers passing ``role`` have already checked the actor may assign it.

        :param dto: Registration input DTO.
        :type dto: RegisterIn
        :param role: Initial role.
        :returns: Public-safe identity DTO.
        :rtype: IdentityOut
        :raises EmailTakenError: If the email is already registered.
        :raises ValidationError: If name, email or password are malformed.
        """
        email = normalize_email(dto.email)
        with self.rw_uow() as uow:
            repo: UserRepository = uow.users

            if repo.exists_by_email(email):
                raise EmailTakenError(email)

            user = User(role=role, active=True)
            _assign(user, "name", dto.name)
            _assign(user, "email", email)
            _assign(user, "password", dto.password)  # model hashes via setter

            try:
                repo.add(user)
            except IntegrityError as exc:
                # Lost a concurrent sign-up race for the same email.
                if violates(exc, "uq_users_email"):
                    raise EmailTakenError(email) from exc
                raise

            out = IdentityOut.from_model(user)

        log_event(log, "identity.registered", identity_id=out.id)
        return out

    # --------------------------------------------------------------------- #
    # Verification
    # --------------------------------------------------------------------- #

    def verify(self, dto: CredentialsIn) -> IdentityOut:
        """
        Verify an email and password pair.

        :param dto: Credentials input DTO.
        :type dto: CredentialsIn
        :returns: The verified identity.
        :rtype: IdentityOut
        :raises NotFoundError: Unknown email.
        :raises AccountInactiveError: Identity is deactivated.
        :raises InvalidPasswordError: Password mismatch.
        """
        with self.ro_uow() as uow:
            user = uow.users.get_by_email(dto.email)
            if user is None:
                raise NotFoundError("User", normalize_email(dto.email))
            if not user.active:
                raise AccountInactiveError()
            if not user.verify_password(dto.password):
                raise InvalidPasswordError()
            return IdentityOut.from_model(user)

    # --------------------------------------------------------------------- #
    # Retrieval
    # --------------------------------------------------------------------- #

    def get(self, identity_id: int) -> IdentityOut:
        """
        Retrieve an identity by id without authorization checks.

        :raises NotFoundError: If the identity does not exist.
        """
        with self.ro_uow() as uow:
            user = uow.users.get(identity_id)
            if user is None:
                raise NotFoundError("User", identity_id)
            return IdentityOut.from_model(user)

    def get_profile(self, identity_id: int) -> IdentityOut:
        """
        Retrieve an identity for the current actor (owner or ADMIN and up).

        :raises ForbiddenError: If the actor is neither.
        :raises NotFoundError: If the identity does not exist.
        """
        self.ensure_owner_or_at_least(identity_id, Role.ADMIN)
        return self.get(identity_id)

    # --------------------------------------------------------------------- #
    # Profile update
    # --------------------------------------------------------------------- #

    def update_profile(self, identity_id: int, dto: ProfileUpdateIn) -> IdentityOut:
        """
        Update name and/or email (owner or ADMIN and up).

        :param identity_id: Identity to update.
        :param dto: New values; ``None`` fields are left untouched.
        :raises ForbiddenError: If the actor is neither owner nor ADMIN+.
        :raises NotFoundError: If the identity does not exist.
        :raises EmailTakenError: If the new email belongs to someone else.
        """
        self.ensure_owner_or_at_least(identity_id, Role.ADMIN)

        updates: dict[str, Any] = {
            k: v for k, v in {"name": dto.name, "email": dto.email}.items() if v is not None
        }

        with self.rw_uow() as uow:
            repo: UserRepository = uow.users
            user = repo.get_for_update(identity_id)
            if user is None:
                raise NotFoundError("User", identity_id)

            if "email" in updates:
                updates["email"] = normalize_email(updates["email"])
                if repo.exists_by_email(updates["email"], exclude_id=identity_id):
                    raise EmailTakenError(updates["email"])

            for field, value in updates.items():
                _assign(user, field, value)
            try:
                repo.flush()
            except IntegrityError as exc:
                if violates(exc, "uq_users_email"):
                    raise EmailTakenError(updates.get("email", user.email)) from exc
                raise

            out = IdentityOut.from_model(user)

        if updates and self.audit is not None:
            self.audit.record(
                self.ctx.actor_id or identity_id,
                AuditAction.UPDATE_USER,
                TargetType.USER,
                identity_id,
                metadata={"fields": sorted(updates)},
            )
        return out

    # --------------------------------------------------------------------- #
    # Password management
    # --------------------------------------------------------------------- #

    def change_password(self, dto: PasswordChangeIn) -> None:
        """
        Change a password and revoke every session of the identity.

        Self-service requires the current password. An ADMIN or SUPER_ADMIN
        may reset the password of an identity it can manage without it.

        :raises NotFoundError: When the identity does not exist.
        :raises ForbiddenError: When the actor may not reset this password.
        :raises InvalidPasswordError: When the current password is wrong.
        """
        actor_id, actor_role = self.ctx.actor_id, self.ctx.actor_role
        is_self = actor_id is not None and actor_id == dto.identity_id
        if not is_self and actor_role not in PRIVILEGED_ROLES:
            raise ForbiddenError("You can only change your own password")

        with self.rw_uow() as uow:
            repo: UserRepository = uow.users
            user = repo.get_for_update(dto.identity_id)
            if user is None:
                raise NotFoundError("User", dto.identity_id)

            if is_self:
                if not dto.current_password or not user.verify_password(dto.current_password):
                    raise InvalidPasswordError()
            elif not can_manage(actor_role, user.role):
                raise ForbiddenError("Cannot reset the password of a peer or superior")

            try:
                repo.set_password(user, dto.new_password)
            except ValueError as exc:
                raise ValidationError("newPassword", str(exc)) from exc

        if self.sessions is not None:
            self.sessions.revoke_all(dto.identity_id)
        if self.audit is not None:
            self.audit.record(
                actor_id if actor_id is not None else dto.identity_id,
                AuditAction.UPDATE_USER,
                TargetType.USER,
                dto.identity_id,
                metadata={"passwordChanged": True, "reset": not is_self},
            )
        log_event(log, "identity.password_changed", identity_id=dto.identity_id)
