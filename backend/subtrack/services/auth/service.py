from __future__ import annotations

import logging
from datetime import timedelta

from subtrack.core.logger import log_event
from subtrack.models.enums import AuditAction, TargetType
from subtrack.services._shared.base import BaseService, ServiceContext
from subtrack.services._shared.errors import (
    AccountInactiveError,
    MissingTokenError,
    ServiceError,
    TokenExpiredOrInvalidError,
)
from subtrack.services._shared.ports import RotationOutcome, SessionStore, TokenProvider
from subtrack.services.audit.service import AuditRecorder
from subtrack.services.auth.dto import AuthResult, AuthTokenConfig, TokenPairOut
from subtrack.services.identity.dto import CredentialsIn, IdentityOut, RegisterIn
from subtrack.services.identity.service import IdentityService

log = logging.getLogger(__name__)


class AuthService(BaseService):
    """
    Authentication lifecycle service (sign-up / sign-in / refresh / sign-out).

    Access tokens are issued through a pluggable :class:`TokenProvider`;
    refresh tokens are opaque and live in a :class:`SessionStore` that
    rotates them atomically, so each one can be exchanged exactly once.

    Every store interaction runs inside :meth:`BaseService.store_guard`, so
    an unreachable store surfaces as ``StoreUnavailableError`` and never as
    a credential failure.
    """

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        session_store: SessionStore,
        identity: IdentityService | None = None,
        audit: AuditRecorder | None = None,
        token_cfg: AuthTokenConfig | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param token_provider: Adapter for issuing/verifying access tokens.
        :param session_store: Stateful store for refresh sessions.
        :param identity: Credential verifier; built from ``ctx`` when omitted.
        :param audit: Audit recorder; built from ``ctx`` when omitted.
        :param token_cfg: Access/refresh expiry configuration.
        :param ctx: Request-scoped context.
        """
        super().__init__(ctx=ctx)
        self.tokens = token_provider
        self.sessions = session_store
        self.audit = audit or AuditRecorder(ctx=self.ctx)
        self.identity = identity or IdentityService(
            ctx=self.ctx, sessions=session_store, audit=self.audit
        )
        self.cfg = token_cfg or AuthTokenConfig(
            access_expires=timedelta(minutes=15),
            refresh_expires=timedelta(days=7),
        )

    # ------------------------------------------------------------------ #
    # Sign-up / sign-in
    # ------------------------------------------------------------------ #

    def sign_up(self, dto: RegisterIn) -> AuthResult:
        """
        Register a new identity and sign it in.

        :param dto: Registration input.
        :returns: Token pair plus the new identity.
        :raises EmailTakenError: If the email is already registered.
        """
        with self.store_guard("sign_up"):
            identity = self.identity.register(dto)
            tokens = self._issue_pair(identity)

        self.audit.record(
            identity.id,
            AuditAction.CREATE_USER,
            TargetType.USER,
            identity.id,
            metadata={"selfRegistered": True},
        )
        log_event(log, "auth.sign_up", identity_id=identity.id, outcome="ok")
        return AuthResult(tokens=tokens, identity=identity)

    def sign_in(self, dto: CredentialsIn) -> AuthResult:
        """
        Verify credentials and issue a fresh token pair.

        :param dto: Credentials input.
        :returns: Token pair plus the identity.
        :raises NotFoundError: Unknown email.
        :raises AccountInactiveError: Identity is deactivated.
        :raises InvalidPasswordError: Password mismatch.
        """
        with self.store_guard("sign_in"):
            try:
                identity = self.identity.verify(dto)
            except ServiceError as exc:
                log_event(log, "auth.sign_in", level=logging.WARNING, outcome=exc.kind)
                raise
            tokens = self._issue_pair(identity)

        self.sessions.sweep_expired_quietly(identity.id)
        self.audit.record(
            identity.id,
            AuditAction.LOGIN,
            TargetType.USER,
            identity.id,
            metadata={"email": identity.email},
        )
        log_event(log, "auth.sign_in", identity_id=identity.id, outcome="ok")
        return AuthResult(tokens=tokens, identity=identity)

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh(self, refresh_token: str | None) -> TokenPairOut:
        """
        Exchange a refresh token for a new pair (single use).

        Nothing is retried: a failed rotation is reported and the client
        decides whether to sign in again.

        :param refresh_token: Opaque token from a previous grant.
        :raises MissingTokenError: When no token is supplied.
        :raises TokenExpiredOrInvalidError: Unknown, consumed or expired token.
        :raises AccountInactiveError: The owner is deactivated.
        """
        if not refresh_token:
            raise MissingTokenError()

        with self.store_guard("refresh"):
            result = self.sessions.rotate(
                refresh_token, self.tokens.new_refresh_token(), self.cfg.refresh_expires
            )

        if result.outcome is RotationOutcome.INACTIVE:
            log_event(
                log,
                "auth.refresh",
                level=logging.WARNING,
                identity_id=result.identity_id,
                outcome="inactive",
            )
            raise AccountInactiveError()
        if not result.ok or result.record is None or result.role is None:
            reason = "expired" if result.outcome is RotationOutcome.EXPIRED else "invalid"
            log_event(
                log,
                "auth.refresh",
                level=logging.WARNING,
                identity_id=result.identity_id,
                outcome=reason,
            )
            raise TokenExpiredOrInvalidError(reason)

        access = self.tokens.issue_access_token(
            identity_id=result.record.identity_id,
            role=result.role,
            expires_delta=self.cfg.access_expires,
        )
        self.audit.record(
            result.record.identity_id,
            AuditAction.TOKEN_REFRESH,
            TargetType.USER,
            result.record.identity_id,
        )
        log_event(log, "auth.refresh", identity_id=result.record.identity_id, outcome="ok")
        return TokenPairOut(access_token=access, refresh_token=result.record.token)

    # ------------------------------------------------------------------ #
    # Sign-out
    # ------------------------------------------------------------------ #

    def sign_out(self, refresh_token: str | None, identity_id: int | None = None) -> bool:
        """
        Revoke one refresh token. Idempotent: absent tokens are a no-op.

        :param refresh_token: Token to revoke, if the client sent one.
        :param identity_id: Scope the revocation to this identity when known.
        :returns: Whether a session was removed.
        """
        if not refresh_token:
            return False
        with self.store_guard("sign_out"):
            removed = self.sessions.revoke(refresh_token, identity_id)
        log_event(log, "auth.sign_out", identity_id=identity_id, removed=int(removed))
        return removed

    def sign_out_all(self, identity_id: int) -> int:
        """
        Revoke every refresh session of ``identity_id``.

        Outstanding access tokens stay valid until they expire.

        :returns: Number of sessions removed.
        """
        with self.store_guard("sign_out_all"):
            removed = self.sessions.revoke_all(identity_id)
        log_event(log, "auth.sign_out_all", identity_id=identity_id, removed=removed)
        return removed

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _issue_pair(self, identity: IdentityOut) -> TokenPairOut:
        # Record the refresh session first, then sign the access token.
        record = self.sessions.grant(
            identity.id, self.cfg.refresh_expires, token=self.tokens.new_refresh_token()
        )
        access = self.tokens.issue_access_token(
            identity_id=identity.id,
            role=identity.role,
            expires_delta=self.cfg.access_expires,
        )
        return TokenPairOut(access_token=access, refresh_token=record.token)
