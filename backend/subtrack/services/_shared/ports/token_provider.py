from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from subtrack.models.enums import Role

REFRESH_TOKEN_BYTES = 64


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """
    Verified claims of an access token.

    :ivar identity_id: Subject of the token.
    :ivar role: Role snapshot taken when the token was issued.
    """

    identity_id: int
    role: Role


class TokenProvider(Protocol):
    """Port for issuing and verifying access tokens and minting refresh tokens."""

    def issue_access_token(
        self,
        *,
        identity_id: int,
        role: Role,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Sign a short-lived access token carrying ``sub`` and ``role``."""
        ...

    def verify_access_token(self, token: str) -> AccessClaims:
        """
        Decode and validate an access token without touching any store.

        :raises TokenExpiredOrInvalidError: With ``reason`` ``"expired"`` or
            ``"invalid"``.
        """
        ...

    def new_refresh_token(self) -> str:
        """Return a fresh opaque refresh token."""
        ...


def generate_refresh_token() -> str:
    """512 bits from the OS CSPRNG, hex encoded (128 chars)."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)
