"""Explicit lifecycle owner for the identity store connection.

The :class:`ConnectionManager` replaces module-level "connected" flags: it is
built once by the application factory, stored in ``app.extensions`` and asked
for readiness by the health endpoint.
"""

from __future__ import annotations

import logging

from flask import Flask, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from subtrack.core.extensions import db

log = logging.getLogger(__name__)

EXTENSION_KEY = "subtrack.connections"


class ConnectionManager:
    """Open, probe and dispose the SQLAlchemy engine bound to an app.

    :param app: Application whose Flask-SQLAlchemy engine is managed.
    :type app: flask.Flask
    """

    def __init__(self, app: Flask) -> None:
        self.app = app
        self._ready = False

    @property
    def is_ready(self) -> bool:
        """Whether the last :meth:`open` or :meth:`ping` reached the database."""
        return self._ready

    def open(self) -> bool:
        """Check out a connection once to prove the store is reachable.

        Failures are logged and leave the manager not ready; the app keeps
        booting so the health endpoint can report the outage.

        :returns: ``True`` when the database answered.
        :rtype: bool
        """
        with self.app.app_context():
            self._ready = self.ping()
        if self._ready:
            log.info("database.connected", extra={"event": "db.open"})
        return self._ready

    def ping(self) -> bool:
        """Run ``SELECT 1`` on a fresh connection (requires app context)."""
        try:
            with db.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            log.error("database.unreachable", exc_info=True)
            self._ready = False
            return False
        self._ready = True
        return True

    def close(self) -> None:
        """Dispose pooled connections; the next use reconnects lazily."""
        with self.app.app_context():
            db.session.remove()
            db.engine.dispose()
        self._ready = False
        log.info("database.closed", extra={"event": "db.close"})


def init_app(app: Flask) -> ConnectionManager:
    """Attach a :class:`ConnectionManager` to ``app.extensions`` and open it."""

    manager = ConnectionManager(app)
    app.extensions[EXTENSION_KEY] = manager
    manager.open()
    return manager


def get_connection_manager() -> ConnectionManager:
    """Return the manager registered on the current application."""

    manager = current_app.extensions.get(EXTENSION_KEY)
    if manager is None:
        raise RuntimeError("ConnectionManager is not initialized. Call init_app() first.")
    return manager
