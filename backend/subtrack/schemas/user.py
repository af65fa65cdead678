"""Identity resource schemas (camelCase on the wire)."""

from __future__ import annotations

from typing import Any

from marshmallow import Schema, ValidationError, fields, post_load, validate, validates_schema

from subtrack.models.enums import Role

from .common import PaginationQuerySchema


class IdentitySchema(Schema):
    """Public representation of an identity. Never includes the password hash."""

    id = fields.Integer(required=True)
    name = fields.String(required=True)
    email = fields.Email(required=True)
    role = fields.Enum(Role, required=True)
    active = fields.Boolean(required=True)
    created_at = fields.DateTime(data_key="createdAt", allow_none=True)


class ProfileUpdateSchema(Schema):
    """Self-service profile update. Unknown keys such as ``role`` or ``active`` are rejected."""

    name = fields.String(validate=validate.Length(min=2, max=50))
    email = fields.Email(validate=validate.Length(max=254))

    @validates_schema
    def _not_empty(self, data: dict[str, Any], **_: Any) -> None:
        if not data:
            raise ValidationError("Provide at least one of: name, email.")


class RoleChangeSchema(Schema):
    """Payload for ``PATCH /user/<id>/role``; the value is checked by the service."""

    role = fields.String(required=True, validate=validate.Length(min=1, max=20))


class RoleChangeResponseSchema(Schema):
    id = fields.Integer(required=True)
    role = fields.Enum(Role, required=True)


class StatusChangeSchema(Schema):
    """Payload for ``PATCH /user/<id>/status``."""

    active = fields.Boolean(required=True)


class StatusChangeResponseSchema(Schema):
    id = fields.Integer(required=True)
    active = fields.Boolean(required=True)


class PasswordChangeSchema(Schema):
    """Payload for ``PATCH /user/<id>/password``."""

    new_password = fields.String(
        data_key="newPassword", required=True, validate=validate.Length(min=8, max=128)
    )
    current_password = fields.String(
        data_key="currentPassword", load_default=None, validate=validate.Length(max=128)
    )


class UserQuerySchema(PaginationQuerySchema):
    """Filters and ordering for ``GET /user/users``.

    ``sort`` is a comma separated list such as ``-created_at,name``.
    """

    role = fields.String(load_default=None, validate=validate.Length(min=1, max=20))
    active = fields.Boolean(load_default=None)
    sort = fields.String(load_default=None, validate=validate.Length(min=1, max=100))

    @post_load
    def split_sort(self, data: dict[str, Any], **_: Any) -> dict[str, Any]:
        raw = data.get("sort") or ""
        data["sort"] = [token.strip() for token in raw.split(",") if token.strip()]
        return data


class UserCreateSchema(Schema):
    """Payload for ``POST /user``; the role value is checked by the service."""

    name = fields.String(required=True, validate=validate.Length(min=2, max=50))
    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))
    role = fields.String(load_default=Role.USER.value, validate=validate.Length(min=1, max=20))
