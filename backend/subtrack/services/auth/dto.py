from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from subtrack.services.identity.dto import IdentityOut

# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Signed access JWT.
    :type access_token: str
    :param refresh_token: Opaque refresh token.
    :type refresh_token: str
    """

    access_token: str
    refresh_token: str


@dataclass(frozen=True, slots=True)
class AuthResult:
    """
    Output DTO of sign-up and sign-in: a token pair plus the identity.

    :param tokens: Fresh access/refresh pair.
    :type tokens: TokenPairOut
    :param identity: Authenticated identity.
    :type identity: IdentityOut
    """

    tokens: TokenPairOut
    identity: IdentityOut


# ------------------------ Config DTO --------------------------- #


@dataclass(frozen=True, slots=True)
class AuthTokenConfig:
    """
    Token emission configuration.

    :param access_expires: Access token lifetime.
    :type access_expires: timedelta
    :param refresh_expires: Refresh session lifetime.
    :type refresh_expires: timedelta
    """

    access_expires: timedelta
    refresh_expires: timedelta
