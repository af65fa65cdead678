"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside an outer transaction on one dedicated connection. The
scoped session used by the application joins it through SAVEPOINTs, so unit
of work commits are visible for the rest of the test and everything is rolled
back afterwards.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pytest
from sqlalchemy.orm import scoped_session, sessionmaker

from subtrack.core.config import TestingConfig, build_engine_options
from subtrack.core.extensions import db as _db  # Flask-SQLAlchemy instance
from subtrack.factory import create_app  # application factory under test
from subtrack.infra.jwt.flask_jwt_token_provider import JWTTokenProvider
from subtrack.models.enums import Role

DEFAULT_PASSWORD = "Passw0rd!"


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create a Flask application configured for testing.

    A file-backed SQLite database is used instead of ``:memory:`` so the
    health probe checks out its own DBAPI connection rather than sharing the
    one that holds the per-test transaction.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    os.environ.pop("TEST_DATABASE_URL", None)
    db_uri = f"sqlite:///{tmp_path_factory.mktemp('store') / 'subtrack-test.sqlite'}"

    class TestConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = db_uri
        SQLALCHEMY_ENGINE_OPTIONS = build_engine_options(db_uri, 5)
        USE_PROXYFIX = False

    app = create_app(TestConfig, instance_relative_config=False)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated DBAPI connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Provide a SQLAlchemy session wrapped in an outer transaction.

    Notes
    -----
    The outer SAVEPOINT stays open for the whole test: on SQLite, releasing
    the outermost savepoint commits, so the session's own savepoints must
    always be nested inside it. ``create_savepoint`` turns every
    ``session.commit()`` into a ``RELEASE SAVEPOINT``.
    """
    top_trans = connection.begin()
    connection.begin_nested()

    factory = sessionmaker(
        bind=connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )
    scoped = scoped_session(factory)

    # Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        top_trans.rollback()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the transactional session fixture."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield
    SQLAlchemySession.set(None)


@pytest.fixture()
def client(app, session):
    """Return a Flask test client sharing the transactional session.

    Requests reuse an already pushed app context, so each test gets its own
    to keep ``g`` (request id, actor) from leaking between tests.
    """
    with app.app_context():
        yield app.test_client()


@pytest.fixture()
def cli_runner(app, session):
    """Return a Click runner bound to the testing application."""
    return app.test_cli_runner()


@pytest.fixture()
def freeze_time() -> Callable[[str | None], Any]:
    """Factory returning :func:`freezegun.freeze_time`.

    Examples
    --------
    >>> def test_with_frozen_time(freeze_time):
    ...     with freeze_time("2024-01-01"):
    ...         ...
    """
    from freezegun import freeze_time as _freeze_time

    def _factory(target: str | None = None) -> Any:
        return _freeze_time(target or "2024-01-01 12:00:00")

    return _factory


# -- Accounts for HTTP tests ---------------------------------------------------


@dataclass(frozen=True)
class Account:
    """Plain snapshot of a persisted identity plus a valid access token.

    HTTP tests keep these instead of ORM objects: every request ends with
    ``db.session.remove()``, which detaches whatever the test still holds.
    """

    id: int
    email: str
    role: Role
    password: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        from tests.helpers.http import json_headers

        return json_headers(self.token)


@pytest.fixture()
def make_account(session) -> Callable[..., Account]:
    """Factory persisting an identity and issuing an access token for it."""
    from tests.factories.user import UserFactory

    def _make(role: Role = Role.USER, *, active: bool = True, **kwargs: Any) -> Account:
        user = UserFactory(role=role, active=active, password=DEFAULT_PASSWORD, **kwargs)
        token = JWTTokenProvider().issue_access_token(identity_id=user.id, role=user.role)
        return Account(
            id=user.id,
            email=user.email,
            role=user.role,
            password=DEFAULT_PASSWORD,
            token=token,
        )

    return _make


@pytest.fixture()
def account(make_account) -> Account:
    """A regular ``USER`` account."""
    return make_account()


@pytest.fixture()
def admin_account(make_account) -> Account:
    return make_account(Role.ADMIN)


@pytest.fixture()
def super_admin_account(make_account) -> Account:
    return make_account(Role.SUPER_ADMIN)
