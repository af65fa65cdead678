from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, cast

from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from subtrack.models.enums import Role
from subtrack.services._shared.errors import TokenExpiredOrInvalidError
from subtrack.services._shared.ports.token_provider import (
    AccessClaims,
    TokenProvider,
    generate_refresh_token,
)

ACCESS_TOKEN_TYPE = "access"
ROLE_CLAIM = "role"


def claims_to_access(claims: dict[str, Any]) -> AccessClaims:
    """
    Validate decoded JWT claims and build :class:`AccessClaims`.

    Shared by the provider and the request guard in ``api.deps`` so both
    reject the same malformed tokens.

    :raises TokenExpiredOrInvalidError: For a wrong token type, a non-integer
        subject or an unknown role.
    """
    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise TokenExpiredOrInvalidError("invalid")
    try:
        identity_id = int(claims["sub"])
        role = Role(claims[ROLE_CLAIM])
    except (KeyError, TypeError, ValueError) as exc:
        raise TokenExpiredOrInvalidError("invalid") from exc
    return AccessClaims(identity_id=identity_id, role=role)


@dataclass(slots=True)
class JWTTokenProvider(TokenProvider):
    """
    Adapter for Flask-JWT-Extended (HS256 by default).

    .. note::
       Requires an active Flask app context with proper JWT settings.
    """

    def issue_access_token(
        self,
        *,
        identity_id: int,
        role: Role,
        expires_delta: timedelta | None = None,
    ) -> str:
        from flask_jwt_extended import create_access_token as _create_access

        # PyJWT requires a string subject
        return cast(
            str,
            _create_access(
                identity=str(identity_id),
                additional_claims={ROLE_CLAIM: role.value},
                expires_delta=expires_delta,
            ),
        )

    def verify_access_token(self, token: str) -> AccessClaims:
        from flask_jwt_extended import decode_token

        try:
            claims = cast(dict[str, Any], decode_token(token))
        except ExpiredSignatureError as exc:
            raise TokenExpiredOrInvalidError("expired") from exc
        except (InvalidTokenError, JWTExtendedException) as exc:
            raise TokenExpiredOrInvalidError("invalid") from exc
        return claims_to_access(claims)

    def new_refresh_token(self) -> str:
        return generate_refresh_token()
