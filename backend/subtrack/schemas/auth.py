"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from .user import IdentitySchema


class SignUpSchema(Schema):
    """Input payload for account registration."""

    name = fields.String(required=True, validate=validate.Length(min=2, max=50))
    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))


class SignInSchema(Schema):
    """Input payload for authenticating an identity."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshTokenSchema(Schema):
    """Body of ``/auth/refresh`` and ``/auth/sign-out``.

    The token is optional at this layer so a missing token reaches the
    service and surfaces as ``missing_token`` rather than a 422.
    """

    refresh_token = fields.String(data_key="refreshToken", load_default=None, allow_none=True)


class TokenPairSchema(Schema):
    """Response payload containing a fresh access/refresh pair."""

    access_token = fields.String(data_key="accessToken", required=True)
    refresh_token = fields.String(data_key="refreshToken", required=True)


class AuthResponseSchema(TokenPairSchema):
    """Response payload of sign-up and sign-in."""

    identity = fields.Nested(IdentitySchema, required=True)
