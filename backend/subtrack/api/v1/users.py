"""Identity management endpoints (listing, creation, profile, role, status, password, deletion)."""

from __future__ import annotations

from flask import Blueprint, request

from subtrack.api.deps import (
    identity_service,
    json_body,
    json_response,
    require_at_least,
    require_auth,
    require_roles,
    timing,
    user_admin_service,
)
from subtrack.models.enums import Role
from subtrack.schemas import (
    IdentitySchema,
    PasswordChangeSchema,
    ProfileUpdateSchema,
    RoleChangeResponseSchema,
    RoleChangeSchema,
    StatusChangeResponseSchema,
    StatusChangeSchema,
    UserCreateSchema,
    UserQuerySchema,
    build_meta,
)
from subtrack.services.identity.dto import PasswordChangeIn, ProfileUpdateIn, RegisterIn

bp = Blueprint("users", __name__, url_prefix="/user")

identity_schema = IdentitySchema()
identity_list_schema = IdentitySchema(many=True)
user_query_schema = UserQuerySchema(default_limit=20, max_limit=100)
user_create_schema = UserCreateSchema()
profile_update_schema = ProfileUpdateSchema()
role_change_schema = RoleChangeSchema()
role_change_response_schema = RoleChangeResponseSchema()
status_change_schema = StatusChangeSchema()
status_change_response_schema = StatusChangeResponseSchema()
password_change_schema = PasswordChangeSchema()


@bp.get("/users")
@require_at_least(Role.ADMIN)
@timing
def list_users():
    """Return identities page by page, optionally filtered by role and active flag."""

    args = user_query_schema.load(request.args)
    filters = {"role": args.get("role"), "active": args.get("active")}
    page = user_admin_service().list_users(
        filters, page=args["page"], limit=args["limit"], sort=args["sort"]
    )
    meta = build_meta(total=page.total, page=page.page, limit=page.limit)
    return json_response({"data": identity_list_schema.dump(page.items), "meta": meta})


@bp.post("")
@require_at_least(Role.ADMIN)
@timing
def create_user():
    """Create an identity. The initial role must be assignable by the caller."""

    data = user_create_schema.load(json_body())
    identity = user_admin_service().create_user(
        RegisterIn(name=data["name"], email=data["email"], password=data["password"]),
        data["role"],
    )
    return json_response({"data": identity_schema.dump(identity)}, status=201)


@bp.get("/<int:user_id>")
@require_auth
@timing
def get_user(user_id: int):
    """Return one identity (owner or ADMIN and up)."""

    identity = identity_service().get_profile(user_id)
    return json_response({"data": identity_schema.dump(identity)})


@bp.put("/<int:user_id>")
@require_auth
@timing
def update_user(user_id: int):
    """Update name and/or email. ``role`` and ``active`` are rejected here."""

    data = profile_update_schema.load(json_body())
    identity = identity_service().update_profile(user_id, ProfileUpdateIn(**data))
    return json_response({"data": identity_schema.dump(identity)})


@bp.patch("/<int:user_id>/role")
@require_at_least(Role.ADMIN)
@timing
def change_role(user_id: int):
    """Assign a new role, subject to the escalation rules."""

    data = role_change_schema.load(json_body())
    result = user_admin_service().change_role(user_id, data["role"])
    return json_response({"data": role_change_response_schema.dump(result)})


@bp.patch("/<int:user_id>/status")
@require_at_least(Role.ADMIN)
@timing
def change_status(user_id: int):
    """Activate or deactivate an identity."""

    data = status_change_schema.load(json_body())
    result = user_admin_service().set_active(user_id, data["active"])
    return json_response({"data": status_change_response_schema.dump(result)})


@bp.patch("/<int:user_id>/password")
@require_auth
@timing
def change_password(user_id: int):
    """Change or reset a password. Every session of the identity is revoked."""

    data = password_change_schema.load(json_body())
    identity_service().change_password(
        PasswordChangeIn(
            identity_id=user_id,
            new_password=data["new_password"],
            current_password=data.get("current_password"),
        )
    )
    return json_response({"data": {}})


@bp.delete("/<int:user_id>")
@require_roles(Role.SUPER_ADMIN)
@timing
def delete_user(user_id: int):
    """Delete an identity. Super admins only, never oneself."""

    user_admin_service().delete(user_id)
    return json_response({"data": {}})
