"""Audit log query and response schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from .common import PaginationQuerySchema


class AuditQuerySchema(PaginationQuerySchema):
    """Filters accepted by ``GET /audit-logs``; enum values are checked by the service."""

    actor_id = fields.Integer(data_key="actorId", load_default=None, validate=validate.Range(min=0))
    action = fields.String(load_default=None, validate=validate.Length(min=1, max=32))
    target_type = fields.String(
        data_key="targetType", load_default=None, validate=validate.Length(min=1, max=16)
    )
    target_id = fields.String(
        data_key="targetId", load_default=None, validate=validate.Length(min=1, max=64)
    )


class AuditEntrySchema(Schema):
    """Public representation of an audit entry."""

    id = fields.Integer(required=True)
    actor_id = fields.Integer(data_key="actorId", required=True)
    action = fields.Function(lambda e: e.action.value)
    target_type = fields.Function(lambda e: e.target_type.value, data_key="targetType")
    target_id = fields.String(data_key="targetId", allow_none=True)
    ip = fields.String(allow_none=True)
    user_agent = fields.String(data_key="userAgent", allow_none=True)
    metadata = fields.Dict()
    created_at = fields.DateTime(data_key="createdAt", allow_none=True)
