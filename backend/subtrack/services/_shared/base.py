from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from subtrack.models.enums import Role
from subtrack.repositories.base import Pagination
from subtrack.services._shared.errors import ForbiddenError, ServiceError, StoreUnavailableError
from subtrack.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)

log = logging.getLogger(__name__)

STORE_FAILURES = (OperationalError, InterfaceError, PoolTimeoutError)


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data (auth, request ids, client info).

    :param actor_id: Authenticated identity id.
    :param actor_role: Role claimed by the verified access token.
    :param request_id: Correlation id for logging/tracing.
    :param ip: Client address, best effort.
    :param user_agent: Client user agent, best effort.
    """

    actor_id: int | None = None
    actor_role: Role | None = None
    request_id: str | None = None
    ip: str | None = None
    user_agent: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Convert store outages into :class:`StoreUnavailableError`.
    * Offer shared validation helpers (pagination, ownership).

    Notes
    -----
    Services must never touch the global session; always use a Unit of Work.
    """

    DEFAULT_READ_ISOLATION = "READ COMMITTED"

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        """
        :param ctx: Optional request-scoped context (auth, tracing).
        :type ctx: ServiceContext | None
        """
        self.ctx = ctx or ServiceContext()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """
        Create a read-write Unit of Work.

        :rtype: SQLAlchemyUnitOfWork
        """
        return SQLAlchemyUnitOfWork()

    def ro_uow(
        self, *, isolation: str | None = None, enforce_db_readonly: bool = True
    ) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :param isolation: Transaction isolation level (e.g. "READ COMMITTED").
        :param enforce_db_readonly: Apply ``SET TRANSACTION READ ONLY`` when supported.
        :rtype: SQLAlchemyReadOnlyUnitOfWork
        """
        return SQLAlchemyReadOnlyUnitOfWork(
            isolation_level=isolation or self.DEFAULT_READ_ISOLATION,
            enforce_db_readonly=enforce_db_readonly,
        )

    @contextmanager
    def store_guard(self, operation: str) -> Iterator[None]:
        """
        Map driver timeouts and connection failures to ``StoreUnavailableError``.

        Wrap every store interaction on the authentication path with this
        guard so an outage surfaces as a retryable 503, never as a credential
        failure.

        :param operation: Short name used in the log record.
        :raises StoreUnavailableError: When the store times out or is unreachable.
        """
        try:
            yield
        except STORE_FAILURES as exc:
            log.error(
                "store.unavailable operation=%s",
                operation,
                exc_info=True,
                extra={"event": "store.unavailable", "action": operation},
            )
            raise StoreUnavailableError() from exc

    # ----------------------- Validation utilities ---------------------------

    def ensure_pagination(
        self, *, page: int, limit: int, sort: Iterable[str] | None = None, max_limit: int = 100
    ) -> Pagination:
        """
        Build a Pagination value object with basic clamping.

        :rtype: Pagination
        """
        page = max(1, int(page))
        limit = min(max(1, int(limit)), max_limit)
        return Pagination(page=page, limit=limit, sort=list(sort or []))

    # -------------------------- Error handling ------------------------------

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map service-level errors to API-level (HTTP) errors.

        Non-service exceptions are returned untouched so they bubble up to
        the Flask handlers.

        :param exc: Exception raised within the service.
        :returns: Translated exception ready to be re-raised.
        """
        if isinstance(exc, ServiceError):
            from subtrack.core.errors import from_service_error

            return from_service_error(exc)
        return exc

    # --------------------------- AuthZ --------------------------------

    def ensure_owner_or_at_least(
        self, owner_id: int, min_role: Role, *, msg: str | None = None
    ) -> None:
        """
        Ensure the current actor owns the resource or holds ``min_role`` or above.

        :param owner_id: Identity owning the resource.
        :param min_role: Minimum role that bypasses ownership.
        :param msg: Optional custom error message.
        :raises ForbiddenError: If neither condition holds.
        """
        from subtrack.services._shared.policies.roles import is_owner_or_at_least

        if not is_owner_or_at_least(
            identity_id=self.ctx.actor_id,
            identity_role=self.ctx.actor_role,
            resource_owner_id=owner_id,
            min_role=min_role,
        ):
            raise ForbiddenError(msg or "You can only access your own account")
