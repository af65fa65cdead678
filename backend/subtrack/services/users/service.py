"""
UserAdminService
================

Privileged identity management: listing, creation, role changes, activation
and deletion.

Every method enforces the role hierarchy before touching the store and
records an audit entry after the mutation committed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from subtrack.core.logger import log_event
from subtrack.models.enums import AuditAction, Role, TargetType
from subtrack.repositories.base import Page
from subtrack.repositories.user import UserRepository
from subtrack.services._shared.base import BaseService, ServiceContext
from subtrack.services._shared.errors import ForbiddenError, NotFoundError
from subtrack.services._shared.policies.roles import (
    PRIVILEGED_ROLES,
    can_manage,
    ensure_can_assign,
    parse_role,
    require_any_of,
)
from subtrack.services._shared.ports import SessionStore
from subtrack.services.audit.service import AuditRecorder
from subtrack.services.identity.dto import IdentityOut, RegisterIn
from subtrack.services.identity.service import IdentityService

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RoleChangeOut:
    id: int
    role: Role


@dataclass(frozen=True, slots=True)
class StatusChangeOut:
    id: int
    active: bool


class UserAdminService(BaseService):
    """
    Application service for privileged operations on other identities.

    Authorization
    -------------
    - Role and status changes: actor is ADMIN or SUPER_ADMIN and strictly
      outranks the subject's current role (SUPER_ADMIN may act on anyone).
    - Role assignment additionally goes through ``ensure_can_assign`` so an
      ADMIN can never grant ADMIN or SUPER_ADMIN.
    - Listing and creation: ADMIN or SUPER_ADMIN; the initial role of a new
      identity goes through ``ensure_can_assign`` too.
    - Deletion: SUPER_ADMIN only, never oneself.
    """

    def __init__(
        self,
        *,
        sessions: SessionStore,
        audit: AuditRecorder | None = None,
        identity: IdentityService | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        super().__init__(ctx=ctx)
        self.sessions = sessions
        self.audit = audit or AuditRecorder(ctx=self.ctx)
        self.identity = identity or IdentityService(ctx=self.ctx)

    def _require_privileged(self) -> Role:
        role = self.ctx.actor_role
        if role is None or not require_any_of(role, PRIVILEGED_ROLES):
            raise ForbiddenError()
        return role

    # --------------------------------------------------------------------- #
    # Listing
    # --------------------------------------------------------------------- #

    def list_users(
        self,
        filters: dict[str, Any] | None = None,
        *,
        page: int = 1,
        limit: int = 20,
        sort: Iterable[str] | None = None,
    ) -> Page[IdentityOut]:
        """
        Return one page of identities.

        :param filters: Optional ``role`` (raw value, validated here) and ``active``.
        :param sort: Public sort tokens such as ``-created_at``; unknown ones are ignored.
        :raises InvalidRoleError: Unknown role filter.
        :raises ForbiddenError: Actor is not ADMIN or SUPER_ADMIN.
        """
        self._require_privileged()
        criteria = dict(filters or {})
        if criteria.get("role") is not None:
            criteria["role"] = parse_role(criteria["role"])
        pagination = self.ensure_pagination(page=page, limit=limit, sort=sort or ["id"])

        with self.ro_uow() as uow:
            result = uow.users.paginate(pagination, filters=criteria)
            items = [IdentityOut.from_model(user) for user in result.items]
        return Page(items=items, total=result.total, page=result.page, limit=result.limit)

    # --------------------------------------------------------------------- #
    # Creation
    # --------------------------------------------------------------------- #

    def create_user(self, dto: RegisterIn, role: object = Role.USER) -> IdentityOut:
        """
        Create an identity on behalf of the acting administrator.

        :param dto: Name, email and initial password.
        :param role: Raw initial role (validated here).
        :raises InvalidRoleError: Unknown role value.
        :raises ForbiddenError: The actor may not assign ``role``.
        :raises EmailTakenError: The email is already registered.
        """
        target = parse_role(role)
        actor_role = self._require_privileged()
        ensure_can_assign(actor_role, target)

        identity = self.identity.register(dto, role=target)

        self.audit.record(
            self.ctx.actor_id or 0,
            AuditAction.CREATE_USER,
            TargetType.USER,
            identity.id,
            metadata={"email": identity.email, "role": target.value},
        )
        log_event(log, "user.created", actor_id=self.ctx.actor_id, identity_id=identity.id)
        return identity

    # --------------------------------------------------------------------- #
    # Role
    # --------------------------------------------------------------------- #

    def change_role(self, identity_id: int, role: object) -> RoleChangeOut:
        """
        Assign a new role to ``identity_id``.

        :param identity_id: Subject identity.
        :param role: Raw role value (validated here).
        :raises InvalidRoleError: Unknown role value.
        :raises ForbiddenError: Escalation or insufficient privileges.
        :raises NotFoundError: Unknown identity.
        """
        target = parse_role(role)
        actor_role = self._require_privileged()

        with self.rw_uow() as uow:
            repo: UserRepository = uow.users
            user = repo.get_for_update(identity_id)
            if user is None:
                raise NotFoundError("User", identity_id)
            if not can_manage(actor_role, user.role):
                raise ForbiddenError("Cannot change the role of a peer or superior")
            ensure_can_assign(actor_role, target)

            previous = user.role
            repo.set_role(user, target)

        self.audit.record(
            self.ctx.actor_id or 0,
            AuditAction.ROLE_CHANGE,
            TargetType.USER,
            identity_id,
            metadata={"from": previous.value, "to": target.value},
        )
        log_event(
            log, "user.role_changed", actor_id=self.ctx.actor_id, identity_id=identity_id
        )
        return RoleChangeOut(id=identity_id, role=target)

    # --------------------------------------------------------------------- #
    # Status
    # --------------------------------------------------------------------- #

    def set_active(self, identity_id: int, active: bool) -> StatusChangeOut:
        """
        Activate or deactivate an identity.

        Deactivation revokes every refresh session; outstanding access tokens
        expire on their own.

        :raises ForbiddenError: Self-deactivation or insufficient privileges.
        :raises NotFoundError: Unknown identity.
        """
        actor_role = self._require_privileged()
        if not active and self.ctx.actor_id == identity_id:
            raise ForbiddenError("You cannot deactivate your own account")

        with self.rw_uow() as uow:
            repo: UserRepository = uow.users
            user = repo.get_for_update(identity_id)
            if user is None:
                raise NotFoundError("User", identity_id)
            if self.ctx.actor_id != identity_id and not can_manage(actor_role, user.role):
                raise ForbiddenError("Cannot change the status of a peer or superior")
            previous = bool(user.active)
            repo.set_active(user, active)

        if not active:
            self.sessions.revoke_all(identity_id)
        if previous != bool(active):
            self.audit.record(
                self.ctx.actor_id or 0,
                AuditAction.UPDATE_USER,
                TargetType.USER,
                identity_id,
                metadata={"active": bool(active)},
            )
        return StatusChangeOut(id=identity_id, active=bool(active))

    # --------------------------------------------------------------------- #
    # Deletion
    # --------------------------------------------------------------------- #

    def delete(self, identity_id: int) -> None:
        """
        Delete an identity and, by cascade, its sessions.

        Audit entries that reference it are kept.

        :raises ForbiddenError: Actor is not SUPER_ADMIN, or targets itself.
        :raises NotFoundError: Unknown identity.
        """
        if self.ctx.actor_role is not Role.SUPER_ADMIN:
            raise ForbiddenError("Only a super admin can delete users")
        if self.ctx.actor_id == identity_id:
            raise ForbiddenError("You cannot delete your own account")

        with self.rw_uow() as uow:
            repo: UserRepository = uow.users
            user = repo.get_for_update(identity_id)
            if user is None:
                raise NotFoundError("User", identity_id)
            email = user.email
            repo.delete(user)

        self.audit.record(
            self.ctx.actor_id or 0,
            AuditAction.DELETE_USER,
            TargetType.USER,
            identity_id,
            metadata={"email": email},
        )
        log_event(log, "user.deleted", actor_id=self.ctx.actor_id, identity_id=identity_id)
