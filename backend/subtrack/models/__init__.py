from subtrack.models.audit import AuditEntry
from subtrack.models.enums import AuditAction, Role, TargetType
from subtrack.models.refresh_session import RefreshSession
from subtrack.models.user import User

__all__ = [
    "AuditAction",
    "AuditEntry",
    "RefreshSession",
    "Role",
    "TargetType",
    "User",
]
