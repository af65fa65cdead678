"""
Role hierarchy authorizer.

Pure functions over :class:`~subtrack.models.enums.Role`; no I/O. Ranked
roles, highest first::

    SUPER_ADMIN > ADMIN > MANAGER > USER > READ_ONLY

``SERVICE`` is outside the ranking: it never satisfies a rank threshold and is
only ever matched exactly.
"""

from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType
from typing import Final

from subtrack.models.enums import Role
from subtrack.services._shared.errors import ForbiddenError, InvalidRoleError
from subtrack.services._shared.policies.common import is_owner

#: Higher number means more privilege. ``SERVICE`` is intentionally absent.
RANK: Final = MappingProxyType(
    {
        Role.SUPER_ADMIN: 5,
        Role.ADMIN: 4,
        Role.MANAGER: 3,
        Role.USER: 2,
        Role.READ_ONLY: 1,
    }
)

PRIVILEGED_ROLES: Final = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
MANAGEMENT_ROLES: Final = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER})


def parse_role(value: object) -> Role:
    """
    Coerce user input into a :class:`Role`.

    :param value: Raw value, typically a string from a request body.
    :raises InvalidRoleError: If ``value`` is not a known role.
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().upper())
    except ValueError as exc:
        raise InvalidRoleError(value) from exc


def at_least(role: Role) -> frozenset[Role]:
    """
    Return every role whose privilege is at or above ``role``.

    ``at_least(Role.SERVICE)`` is ``{SERVICE}`` because SERVICE is unranked.

    :param role: Minimum role.
    :rtype: frozenset[Role]
    """
    if role not in RANK:
        return frozenset({role})
    floor = RANK[role]
    return frozenset(r for r, rank in RANK.items() if rank >= floor)


def require_any_of(identity_role: Role | None, allowed_roles: Iterable[Role]) -> bool:
    """Return whether ``identity_role`` is one of ``allowed_roles``."""
    if identity_role is None:
        return False
    return identity_role in frozenset(allowed_roles)


def outranks(actor_role: Role, subject_role: Role) -> bool:
    """Return whether ``actor_role`` is strictly above ``subject_role``."""
    if actor_role not in RANK or subject_role not in RANK:
        return False
    return RANK[actor_role] > RANK[subject_role]


def can_assign_role(actor_role: Role | None, target_role: Role) -> bool:
    """
    Decide whether ``actor_role`` may grant ``target_role`` to someone.

    - ``SUPER_ADMIN`` may assign any role, ``SERVICE`` included.
    - ``ADMIN`` and ``MANAGER`` may assign ranked roles strictly below their own.
    - Everyone else may assign nothing.
    """
    if actor_role is Role.SUPER_ADMIN:
        return True
    if actor_role in (Role.ADMIN, Role.MANAGER):
        return outranks(actor_role, target_role)
    return False


def ensure_can_assign(actor_role: Role | None, target_role: Role) -> None:
    """
    :raises ForbiddenError: If :func:`can_assign_role` denies the assignment.
    """
    if not can_assign_role(actor_role, target_role):
        actor = actor_role.value if actor_role is not None else "anonymous"
        raise ForbiddenError(f"{actor} cannot assign role {target_role.value}")


def can_manage(actor_role: Role | None, subject_role: Role) -> bool:
    """
    Whether ``actor_role`` may change another identity currently holding ``subject_role``.

    Keeps an ADMIN from demoting a peer ADMIN or a SUPER_ADMIN.
    """
    if actor_role is Role.SUPER_ADMIN:
        return True
    if actor_role is None:
        return False
    return outranks(actor_role, subject_role)


def is_owner_or_at_least(
    *,
    identity_id: int | None,
    identity_role: Role | None,
    resource_owner_id: int | None,
    min_role: Role,
) -> bool:
    """Owner of the resource, or holder of ``min_role`` or any role above it."""
    if is_owner(actor_id=identity_id, owner_id=resource_owner_id):
        return True
    return identity_role is not None and identity_role in at_least(min_role)
