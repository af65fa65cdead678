"""Integration tests for ``GET /audit-logs``."""

from __future__ import annotations

import pytest

from subtrack.models.enums import Role
from tests.helpers.assertions import assert_problem
from tests.helpers.http import build_url

SIGN_IN = build_url("/auth/sign-in")


@pytest.fixture
def trail(client, account, admin_account):
    """Two logins and one role change, written through the API."""

    for who in (account, admin_account):
        resp = client.post(SIGN_IN, json={"email": who.email, "password": who.password})
        assert resp.status_code == 200
    resp = client.patch(
        build_url(f"/user/{account.id}/role"),
        json={"role": "READ_ONLY"},
        headers=admin_account.headers,
    )
    assert resp.status_code == 200


class TestAuditLogs:
    def test_admin_lists_newest_first(self, client, admin_account, trail):
        resp = client.get(build_url("/audit-logs"), headers=admin_account.headers)
        assert resp.status_code == 200
        body = resp.get_json()

        assert [e["action"] for e in body["data"]] == ["ROLE_CHANGE", "LOGIN", "LOGIN"]
        assert body["meta"] == {
            "total": 3,
            "page": 1,
            "limit": 50,
            "hasNext": False,
            "hasPrev": False,
        }
        newest = body["data"][0]
        assert newest["actorId"] == admin_account.id
        assert newest["targetType"] == "USER"
        assert newest["metadata"] == {"from": "USER", "to": "READ_ONLY"}
        assert newest["createdAt"]

    def test_filter_by_action(self, client, account, admin_account, trail):
        resp = client.get(
            build_url("/audit-logs", action="LOGIN", actorId=account.id),
            headers=admin_account.headers,
        )
        data = resp.get_json()["data"]
        assert len(data) == 1
        assert data[0]["targetId"] == str(account.id)

    def test_pagination(self, client, admin_account, trail):
        resp = client.get(build_url("/audit-logs", page=2, limit=2), headers=admin_account.headers)
        body = resp.get_json()
        assert len(body["data"]) == 1
        assert body["meta"]["hasPrev"] is True
        assert body["meta"]["hasNext"] is False

    def test_unknown_action_is_rejected(self, client, admin_account):
        resp = client.get(build_url("/audit-logs", action="EXPLODE"), headers=admin_account.headers)
        assert_problem(resp, 422, "validation_error")

    @pytest.mark.parametrize("role", [Role.USER, Role.MANAGER, Role.READ_ONLY])
    def test_below_admin_is_forbidden(self, client, make_account, role):
        reader = make_account(role=role)
        resp = client.get(build_url("/audit-logs"), headers=reader.headers)
        assert_problem(resp, 403, "forbidden")

    def test_requires_authentication(self, client):
        assert_problem(client.get(build_url("/audit-logs")), 401, "unauthenticated")
