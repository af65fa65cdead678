"""
subtrack.services._shared.ports
===============================

Collection of *ports* (hexagonal interfaces) for token and session
infrastructure. Services depend on these protocols; concrete adapters live in
``subtrack.infra``.

Modules
-------
- :mod:`token_provider`:
    :class:`~.TokenProvider` (access token issue/verify, refresh token minting)
    and :class:`~.AccessClaims`.

- :mod:`session_store`:
    :class:`~.SessionStore`, :class:`~.RotationResult`,
    :class:`~.RotationOutcome`, :class:`~.SessionRecordView` and
    :class:`~.SessionStats`.
"""

from __future__ import annotations

from .session_store import (
    RotationOutcome,
    RotationResult,
    SessionRecordView,
    SessionStats,
    SessionStore,
)
from .token_provider import AccessClaims, TokenProvider, generate_refresh_token

__all__ = [
    "AccessClaims",
    "TokenProvider",
    "generate_refresh_token",
    "RotationOutcome",
    "RotationResult",
    "SessionRecordView",
    "SessionStats",
    "SessionStore",
]
