"""Convenience exports for application schemas."""

from __future__ import annotations

from .audit import AuditEntrySchema, AuditQuerySchema
from .auth import (
    AuthResponseSchema,
    RefreshTokenSchema,
    SignInSchema,
    SignUpSchema,
    TokenPairSchema,
)
from .common import MetaSchema, PaginationQuerySchema, build_meta
from .user import (
    IdentitySchema,
    PasswordChangeSchema,
    ProfileUpdateSchema,
    RoleChangeResponseSchema,
    RoleChangeSchema,
    StatusChangeResponseSchema,
    StatusChangeSchema,
    UserCreateSchema,
    UserQuerySchema,
)

__all__ = [
    "AuditEntrySchema",
    "AuditQuerySchema",
    "AuthResponseSchema",
    "RefreshTokenSchema",
    "SignInSchema",
    "SignUpSchema",
    "TokenPairSchema",
    "MetaSchema",
    "PaginationQuerySchema",
    "build_meta",
    "IdentitySchema",
    "PasswordChangeSchema",
    "ProfileUpdateSchema",
    "RoleChangeResponseSchema",
    "RoleChangeSchema",
    "StatusChangeResponseSchema",
    "StatusChangeSchema",
    "UserCreateSchema",
    "UserQuerySchema",
]
