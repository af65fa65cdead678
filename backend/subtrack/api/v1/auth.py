"""Authentication endpoints using the service layer."""

from __future__ import annotations

from flask import Blueprint

from subtrack.api.deps import (
    authenticated_actor,
    auth_service,
    current_actor,
    identity_service,
    json_body,
    json_response,
    optional_auth,
    require_auth,
    timing,
)
from subtrack.schemas import (
    AuthResponseSchema,
    IdentitySchema,
    RefreshTokenSchema,
    SignInSchema,
    SignUpSchema,
    TokenPairSchema,
)
from subtrack.services.auth.dto import AuthResult
from subtrack.services.identity.dto import CredentialsIn, RegisterIn

bp = Blueprint("auth", __name__, url_prefix="/auth")

sign_up_schema = SignUpSchema()
sign_in_schema = SignInSchema()
refresh_schema = RefreshTokenSchema()
auth_response_schema = AuthResponseSchema()
token_pair_schema = TokenPairSchema()
identity_schema = IdentitySchema()


def _auth_body(result: AuthResult) -> dict:
    return auth_response_schema.dump(
        {
            "access_token": result.tokens.access_token,
            "refresh_token": result.tokens.refresh_token,
            "identity": result.identity,
        }
    )


@bp.post("/sign-up")
@timing
def sign_up():
    """Register a new identity and return its first token pair."""

    data = sign_up_schema.load(json_body())
    result = auth_service().sign_up(RegisterIn(**data))
    return json_response({"data": _auth_body(result)}, status=201)


@bp.post("/sign-in")
@timing
def sign_in():
    """Verify credentials and issue a token pair."""

    data = sign_in_schema.load(json_body())
    result = auth_service().sign_in(CredentialsIn(**data))
    return json_response({"data": _auth_body(result)})


@bp.post("/refresh")
@timing
def refresh():
    """Exchange a refresh token for a new pair. The old token stops working."""

    data = refresh_schema.load(json_body())
    tokens = auth_service().refresh(data.get("refresh_token"))
    return json_response({"data": token_pair_schema.dump(tokens)})


@bp.post("/sign-out")
@optional_auth
@timing
def sign_out():
    """Revoke one refresh token. Always succeeds, even for unknown tokens."""

    data = refresh_schema.load(json_body())
    actor = current_actor()
    auth_service().sign_out(
        data.get("refresh_token"), actor.identity_id if actor is not None else None
    )
    return json_response({"data": {}})


@bp.post("/sign-out-all")
@require_auth
@timing
def sign_out_all():
    """Revoke every refresh session of the authenticated identity."""

    actor = authenticated_actor()
    auth_service().sign_out_all(actor.identity_id)
    return json_response({"data": {}})


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated identity."""

    actor = authenticated_actor()
    identity = identity_service().get(actor.identity_id)
    return json_response({"data": identity_schema.dump(identity)})
