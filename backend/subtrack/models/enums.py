"""Closed vocabularies persisted as strings (roles, audit actions, targets)."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Access roles. Rank order lives in :mod:`subtrack.services._shared.policies.roles`."""

    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    USER = "USER"
    READ_ONLY = "READ_ONLY"
    SERVICE = "SERVICE"


class AuditAction(str, Enum):
    """Privileged or security-relevant actions captured in the audit trail."""

    LOGIN = "LOGIN"
    TOKEN_REFRESH = "TOKEN_REFRESH"
    CREATE_SUBSCRIPTION = "CREATE_SUBSCRIPTION"
    UPDATE_SUBSCRIPTION = "UPDATE_SUBSCRIPTION"
    DELETE_SUBSCRIPTION = "DELETE_SUBSCRIPTION"
    CANCEL_SUBSCRIPTION = "CANCEL_SUBSCRIPTION"
    ROLE_CHANGE = "ROLE_CHANGE"
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    SYSTEM_CONFIG_CHANGE = "SYSTEM_CONFIG_CHANGE"
    BACKUP_CREATED = "BACKUP_CREATED"
    DATA_EXPORT = "DATA_EXPORT"


class TargetType(str, Enum):
    """Kind of resource an audit entry points at."""

    USER = "USER"
    SUBSCRIPTION = "SUBSCRIPTION"
    SYSTEM = "SYSTEM"
