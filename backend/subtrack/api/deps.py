"""Shared API helpers: auth guards, service wiring and response helpers."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, g, jsonify, request
from flask_jwt_extended import get_jwt, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from subtrack.core.logger import ensure_request_id
from subtrack.infra.jwt.flask_jwt_token_provider import JWTTokenProvider, claims_to_access
from subtrack.infra.sql.sql_session_store import SQLAlchemySessionStore
from subtrack.models.enums import Role
from subtrack.services._shared.base import ServiceContext
from subtrack.services._shared.errors import ForbiddenError
from subtrack.services._shared.policies.roles import at_least, require_any_of
from subtrack.services._shared.ports import AccessClaims
from subtrack.services.audit.service import AuditRecorder
from subtrack.services.auth.dto import AuthTokenConfig
from subtrack.services.auth.service import AuthService
from subtrack.services.identity.service import IdentityService
from subtrack.services.users.service import UserAdminService

F = TypeVar("F", bound=Callable[..., Any])


# ----------------------------- Authentication -----------------------------


def current_actor() -> AccessClaims | None:
    """Return the verified claims of the current request, if any."""

    return g.get("actor")


def authenticated_actor() -> AccessClaims:
    """Return the actor loaded by :func:`require_auth`; fails loudly when unguarded."""

    actor = current_actor()
    if actor is None:
        raise RuntimeError("authenticated_actor() used outside require_auth.")
    return actor


def _load_actor(*, optional: bool) -> AccessClaims | None:
    verify_jwt_in_request(optional=optional)
    claims = get_jwt()
    if not claims:
        g.actor = None
        return None
    g.actor = claims_to_access(claims)
    return g.actor


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token and expose it as ``g.actor``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        _load_actor(optional=False)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def optional_auth(func: F) -> F:
    """Load the actor when a usable bearer token is present; ignore it otherwise."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        try:
            _load_actor(optional=True)
        except (JWTExtendedException, PyJWTError):
            g.actor = None
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def require_roles(*roles: Role) -> Callable[[F], F]:
    """Ensure the verified role is exactly one of ``roles``."""

    allowed = frozenset(roles)

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            actor = _load_actor(optional=False)
            if actor is None or not require_any_of(actor.role, allowed):
                raise ForbiddenError()
            return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def require_at_least(role: Role) -> Callable[[F], F]:
    """Ensure the verified role ranks at or above ``role``."""

    return require_roles(*at_least(role))


# ----------------------------- Service wiring -----------------------------


def service_context() -> ServiceContext:
    """Build the request-scoped context handed to services."""

    actor = current_actor()
    return ServiceContext(
        actor_id=actor.identity_id if actor else None,
        actor_role=actor.role if actor else None,
        request_id=ensure_request_id(),
        ip=request.remote_addr or None,
        user_agent=request.headers.get("User-Agent") or None,
    )


def token_config() -> AuthTokenConfig:
    return AuthTokenConfig(
        access_expires=current_app.config["JWT_ACCESS_TOKEN_EXPIRES"],
        refresh_expires=current_app.config["REFRESH_TOKEN_TTL"],
    )


def auth_service() -> AuthService:
    return AuthService(
        token_provider=JWTTokenProvider(),
        session_store=SQLAlchemySessionStore(),
        token_cfg=token_config(),
        ctx=service_context(),
    )


def identity_service() -> IdentityService:
    ctx = service_context()
    return IdentityService(
        ctx=ctx, sessions=SQLAlchemySessionStore(), audit=AuditRecorder(ctx=ctx)
    )


def user_admin_service() -> UserAdminService:
    return UserAdminService(sessions=SQLAlchemySessionStore(), ctx=service_context())


def audit_recorder() -> AuditRecorder:
    return AuditRecorder(ctx=service_context())


# ----------------------------- Request/response ---------------------------


def json_body() -> dict[str, Any]:
    """Return the JSON body as a dict (empty when absent or malformed)."""

    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
