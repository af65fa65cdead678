"""CORS policy for the ``/api`` surface."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS

#: Headers browsers may send cross-origin (bearer tokens, correlation ids).
ALLOWED_HEADERS = ["Authorization", "Content-Type", "X-Request-ID", "X-Correlation-ID"]
#: Headers exposed to browser code; the request id lets clients quote failures.
EXPOSED_HEADERS = ["X-Request-ID"]


def parse_origins(raw: str | None) -> list[str]:
    """Split a comma-separated ``CORS_ORIGINS`` value, dropping blanks."""
    return [o.strip() for o in (raw or "").split(",") if o.strip()]


def init_app(app: Flask) -> None:
    """Configure CORS for API endpoints based on application config.

    Tokens travel in the ``Authorization`` header, never in cookies, so a
    wildcard policy stays usable; credentials are only enabled for an
    explicit origin list.
    """
    origins = parse_origins(app.config.get("CORS_ORIGINS"))
    wildcard = not origins or origins == ["*"]

    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if wildcard else origins}},
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
        supports_credentials=not wildcard,
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
