"""Centralized JSON (RFC 7807) error handling for the API.

Service-layer errors are translated to HTTP by one pure table,
:data:`SERVICE_ERROR_STATUS`, consumed by :func:`from_service_error`. Services
never mention HTTP; blueprints never build error bodies by hand.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, has_request_context, jsonify, request
from flask_jwt_extended import JWTManager
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from werkzeug.exceptions import HTTPException

from subtrack.core.logger import ensure_request_id
from subtrack.services._shared.errors import ServiceError

log = logging.getLogger(__name__)

#: ``ServiceError.kind`` -> HTTP status. Unknown kinds fall back to 400.
SERVICE_ERROR_STATUS: Mapping[str, int] = {
    "email_taken": HTTPStatus.CONFLICT,
    "not_found": HTTPStatus.NOT_FOUND,
    "invalid_password": HTTPStatus.UNAUTHORIZED,
    "account_inactive": HTTPStatus.FORBIDDEN,
    "token_expired_or_invalid": HTTPStatus.UNAUTHORIZED,
    "missing_token": HTTPStatus.BAD_REQUEST,
    "forbidden": HTTPStatus.FORBIDDEN,
    "invalid_role": HTTPStatus.BAD_REQUEST,
    "validation_error": HTTPStatus.UNPROCESSABLE_ENTITY,
    "audit_append_only_violation": HTTPStatus.INTERNAL_SERVER_ERROR,
    "store_unavailable": HTTPStatus.SERVICE_UNAVAILABLE,
}

GENERIC_5XX_DETAIL: Mapping[int, str] = {
    HTTPStatus.INTERNAL_SERVER_ERROR: "Unexpected error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service temporarily unavailable",
}


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthenticated",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        413: "payload_too_large",
        415: "unsupported_media_type",
        422: "unprocessable_entity",
        429: "too_many_requests",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param details: Optional safe, structured details.
    :returns: Problem+JSON dictionary.
    :rtype: dict
    """
    problem: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": int(status),
        "detail": message,
        "instance": request.path if has_request_context() else None,
        "code": code,
    }
    if details:
        problem["details"] = details
    problem["request_id"] = ensure_request_id()
    return problem


def _problem_response(problem: dict[str, Any]) -> Response:
    """
    Return a Flask response with ``application/problem+json`` media type.

    :param problem: Problem details payload.
    :returns: Flask JSON Response with proper MIME type.
    :rtype: flask.Response
    """
    resp = jsonify(problem)
    resp.status_code = int(problem["status"])
    resp.mimetype = "application/problem+json"
    return resp


class APIError(Exception):
    """
    Represent a JSON-serializable API error.

    Parameters
    ----------
    message : str
        Human-readable description presented to clients.
    status_code : int, optional
        HTTP status code to return. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier, typically snake_case. Defaults to
        ``"bad_request"``.
    details : dict[str, Any] | None, optional
        Optional structured payload included in the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        """
        Serialize error metadata into an RFC 7807 problem.

        :returns: Problem details dictionary.
        :rtype: dict
        """
        return _as_problem(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details or None,
        )


def from_service_error(exc: ServiceError) -> APIError:
    """
    Translate a service-layer error into its HTTP representation.

    The mapping is keyed on ``exc.kind`` so new error classes only need a row in
    :data:`SERVICE_ERROR_STATUS`. Server-side kinds get a generic detail so
    internal messages never reach clients.

    :param exc: Error raised by a service or the authorizer.
    :type exc: ServiceError
    :returns: API error carrying status, stable code and client-safe message.
    :rtype: APIError
    """
    status = int(SERVICE_ERROR_STATUS.get(exc.kind, HTTPStatus.BAD_REQUEST))
    message = GENERIC_5XX_DETAIL.get(status, str(exc)) if status >= 500 else str(exc)
    details: dict[str, Any] = {}
    if exc.retryable:
        details["retryable"] = True
    reason = getattr(exc, "reason", None)
    if reason:
        details["reason"] = reason
    return APIError(message, status_code=status, code=exc.kind, details=details)


def register_jwt_handlers(jwt: JWTManager) -> None:
    """
    Render flask-jwt-extended failures with the same problem format.

    :param jwt: JWT manager bound to the application.
    :type jwt: flask_jwt_extended.JWTManager
    """

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return _problem_response(
            _as_problem(status=HTTPStatus.UNAUTHORIZED, code="unauthenticated", message=reason)
        )

    @jwt.expired_token_loader
    def _expired_token(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        return _problem_response(
            _as_problem(
                status=HTTPStatus.UNAUTHORIZED,
                code="token_expired_or_invalid",
                message="Token has expired",
                details={"reason": "expired"},
            )
        )

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        return _problem_response(
            _as_problem(
                status=HTTPStatus.UNAUTHORIZED,
                code="token_expired_or_invalid",
                message="Invalid or expired token",
                details={"reason": "invalid"},
            )
        )


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees RFC 7807 responses for all handled errors.
    - Ensures a correlation ``request_id`` is present on every error.
    - Emits 5xx with ``exc_info`` for traceability; 4xx as warnings.
    """

    from subtrack.core.extensions import jwt

    register_jwt_handlers(jwt)

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        problem = err.to_problem()
        level = log.error if err.status_code >= 500 else log.warning
        level(
            "APIError: code=%s status=%s msg=%s request_id=%s",
            err.code,
            err.status_code,
            err.message,
            problem.get("request_id"),
        )
        return _problem_response(problem)

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        api_err = from_service_error(err)
        problem = api_err.to_problem()
        if api_err.status_code >= 500:
            # keep the internal message in logs only
            log.error(
                "ServiceError: kind=%s msg=%s request_id=%s",
                err.kind,
                err,
                problem.get("request_id"),
                exc_info=err,
            )
        else:
            log.warning(
                "ServiceError: kind=%s status=%s request_id=%s",
                err.kind,
                api_err.status_code,
                problem.get("request_id"),
            )
        return _problem_response(problem)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND and has_request_context():
            message = f"Route '{request.path}' not found"
        problem = _as_problem(status=status, code=error_code, message=message)
        level = log.error if status >= 500 else log.warning
        level(
            "HTTPException: code=%s status=%s detail=%s request_id=%s",
            error_code,
            status,
            message,
            problem.get("request_id"),
        )
        return _problem_response(problem)

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        problem = _as_problem(
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": err.messages},
        )
        log.warning("ValidationError: request_id=%s", problem.get("request_id"))
        return _problem_response(problem)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        # Do not leak raw DB error to clients
        problem = _as_problem(
            status=HTTPStatus.CONFLICT,
            code="conflict",
            message="Resource conflict",
        )
        log.error("IntegrityError: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem)

    @app.errorhandler(OperationalError)
    @app.errorhandler(PoolTimeoutError)
    def handle_operational_error(err: Exception):
        problem = _as_problem(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="store_unavailable",
            message=GENERIC_5XX_DETAIL[HTTPStatus.SERVICE_UNAVAILABLE],
            details={"retryable": True},
        )
        log.error("OperationalError: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; never leak internal details
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message=GENERIC_5XX_DETAIL[HTTPStatus.INTERNAL_SERVER_ERROR],
        )
        log.error("Unhandled exception: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem)
