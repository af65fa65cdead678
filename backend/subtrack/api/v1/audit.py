"""Read-only audit log endpoint."""

from __future__ import annotations

from flask import Blueprint, request

from subtrack.api.deps import audit_recorder, json_response, require_at_least, timing
from subtrack.models.enums import Role
from subtrack.schemas import AuditEntrySchema, AuditQuerySchema, build_meta

bp = Blueprint("audit", __name__, url_prefix="/audit-logs")

query_schema = AuditQuerySchema(default_limit=50, max_limit=100)
entry_list_schema = AuditEntrySchema(many=True)


@bp.get("")
@require_at_least(Role.ADMIN)
@timing
def list_audit_logs():
    """Return audit entries newest first, filtered by actor, action or target."""

    args = query_schema.load(request.args)
    filters = {
        key: args.get(key) for key in ("actor_id", "action", "target_type", "target_id")
    }
    page = audit_recorder().recent(filters, page=args["page"], limit=args["limit"])
    meta = build_meta(total=page.total, page=page.page, limit=page.limit)
    return json_response({"data": entry_list_schema.dump(page.items), "meta": meta})
