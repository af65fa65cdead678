"""Concurrent refresh rotation against a standalone file-backed SQLite database.

The per-test transactional session cannot be shared between threads, so these
tests bind ``db.session`` to a thread-local scoped session over a database of
their own. Every worker thread therefore runs its own transactions, and the
conditional ``DELETE`` decides the winner exactly as it does in production.
"""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import scoped_session, sessionmaker

from subtrack.core.config import build_engine_options
from subtrack.core.extensions import db
from subtrack.infra.sql.sql_session_store import SQLAlchemySessionStore
from subtrack.models.enums import Role
from subtrack.models.refresh_session import RefreshSession
from subtrack.models.user import User
from subtrack.services._shared.ports import RotationOutcome

WORKERS = 8
TTL = timedelta(days=7)


@pytest.fixture
def isolated_session(tmp_path, monkeypatch):
    """Point ``db.session`` at a fresh database shared by every thread of the test."""
    uri = f"sqlite:///{tmp_path / 'rotation-race.sqlite'}"
    engine = create_engine(uri, **build_engine_options(uri, 30))
    db.metadata.create_all(engine)
    scoped = scoped_session(sessionmaker(bind=engine, expire_on_commit=False))
    monkeypatch.setattr(db, "session", scoped)
    try:
        yield scoped
    finally:
        scoped.remove()
        engine.dispose()


@pytest.fixture
def owner_id(isolated_session) -> int:
    user = User(name="Racer", email="racer@example.com", role=Role.USER, active=True)
    user.password = "Passw0rd!"
    isolated_session.add(user)
    isolated_session.commit()
    identity_id = user.id
    isolated_session.remove()
    return identity_id


def _rotate_concurrently(old_token: str) -> tuple[list, list[Exception]]:
    store = SQLAlchemySessionStore()
    barrier = threading.Barrier(WORKERS)
    results: list = []
    errors: list[Exception] = []

    def worker(n: int) -> None:
        try:
            barrier.wait()
            results.append(store.rotate(old_token, f"rotated-{n}", TTL))
        except Exception as exc:
            errors.append(exc)
        finally:
            db.session.remove()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(WORKERS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results, errors


def _live_tokens(session, identity_id: int) -> list[str]:
    stmt = select(RefreshSession.token).where(RefreshSession.user_id == identity_id)
    tokens = list(session.execute(stmt).scalars().all())
    session.remove()
    return tokens


class TestConcurrentRotation:
    def test_exactly_one_caller_wins(self, isolated_session, owner_id):
        granted = SQLAlchemySessionStore().grant(owner_id, TTL, token="contested")
        isolated_session.remove()

        results, errors = _rotate_concurrently(granted.token)

        assert errors == []
        assert len(results) == WORKERS
        winners = [r for r in results if r.outcome is RotationOutcome.OK]
        assert len(winners) == 1
        losers = [r for r in results if r.outcome is RotationOutcome.NOT_FOUND]
        assert len(losers) == WORKERS - 1

        [token] = _live_tokens(isolated_session, owner_id)
        assert token == winners[0].record.token
        assert token.startswith("rotated-")

    def test_no_caller_wins_an_unknown_token(self, isolated_session, owner_id):
        results, errors = _rotate_concurrently("never-granted")

        assert errors == []
        assert {r.outcome for r in results} == {RotationOutcome.NOT_FOUND}
        assert _live_tokens(isolated_session, owner_id) == []
