"""Integration tests for the identity management endpoints."""

from __future__ import annotations

from subtrack.models.enums import AuditAction, Role
from tests.helpers.assertions import assert_problem
from tests.helpers.http import build_url
from tests.helpers.queries import audit_entries, session_count

SIGN_IN = build_url("/auth/sign-in")
REFRESH = build_url("/auth/refresh")


def _user_url(user_id: int, suffix: str = "") -> str:
    return build_url(f"/user/{user_id}{suffix}")


def _refresh_token(client, account) -> str:
    resp = client.post(SIGN_IN, json={"email": account.email, "password": account.password})
    assert resp.status_code == 200
    return resp.get_json()["data"]["refreshToken"]


class TestListUsers:
    URL = build_url("/user/users")

    def test_admin_lists_everyone_with_meta(self, client, make_account, admin_account):
        make_account()
        make_account(Role.MANAGER)
        resp = client.get(self.URL, headers=admin_account.headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body["data"]) == 3
        assert "passwordHash" not in body["data"][0]
        assert body["meta"] == {
            "total": 3,
            "page": 1,
            "limit": 20,
            "hasNext": False,
            "hasPrev": False,
        }

    def test_filters_by_role_and_active(self, client, make_account, admin_account):
        manager = make_account(Role.MANAGER)
        make_account(Role.MANAGER, active=False)
        make_account()

        resp = client.get(
            self.URL,
            query_string={"role": "manager", "active": "true"},
            headers=admin_account.headers,
        )
        assert resp.status_code == 200
        assert [u["id"] for u in resp.get_json()["data"]] == [manager.id]

    def test_sorting_and_paging(self, client, make_account, admin_account):
        make_account(name="Zed Person")
        make_account(name="Amy Person")

        resp = client.get(
            self.URL,
            query_string={"sort": "name", "limit": 2, "page": 1},
            headers=admin_account.headers,
        )
        body = resp.get_json()
        assert [u["name"] for u in body["data"]][0] == "Amy Person"
        assert body["meta"]["hasNext"] is True

    def test_unknown_role_filter(self, client, admin_account):
        resp = client.get(
            self.URL, query_string={"role": "OVERLORD"}, headers=admin_account.headers
        )
        assert_problem(resp, 400, "invalid_role")

    def test_plain_users_are_forbidden(self, client, account):
        assert_problem(client.get(self.URL, headers=account.headers), 403, "forbidden")

    def test_requires_authentication(self, client):
        assert_problem(client.get(self.URL), 401, "unauthenticated")


class TestCreateUser:
    URL = build_url("/user")
    PAYLOAD = {"name": "New Hire", "email": "New.Hire@Example.com", "password": "Welcome-123"}

    def test_admin_creates_a_manager(self, session, client, admin_account):
        resp = client.post(
            self.URL, json={**self.PAYLOAD, "role": "MANAGER"}, headers=admin_account.headers
        )
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert (data["email"], data["role"], data["active"]) == (
            "new.hire@example.com",
            "MANAGER",
            True,
        )

        [entry] = audit_entries(session, AuditAction.CREATE_USER)
        assert (entry.actor_id, entry.target_id) == (admin_account.id, str(data["id"]))

        resp = client.post(
            SIGN_IN, json={"email": "new.hire@example.com", "password": "Welcome-123"}
        )
        assert resp.status_code == 200

    def test_role_defaults_to_user(self, client, admin_account):
        resp = client.post(self.URL, json=self.PAYLOAD, headers=admin_account.headers)
        assert resp.status_code == 201
        assert resp.get_json()["data"]["role"] == "USER"

    def test_admin_cannot_create_an_admin(self, session, client, admin_account):
        resp = client.post(
            self.URL, json={**self.PAYLOAD, "role": "ADMIN"}, headers=admin_account.headers
        )
        assert_problem(resp, 403, "forbidden")
        assert audit_entries(session, AuditAction.CREATE_USER) == []

    def test_super_admin_creates_an_admin(self, client, super_admin_account):
        resp = client.post(
            self.URL, json={**self.PAYLOAD, "role": "ADMIN"}, headers=super_admin_account.headers
        )
        assert resp.status_code == 201
        assert resp.get_json()["data"]["role"] == "ADMIN"

    def test_taken_email(self, client, account, admin_account):
        resp = client.post(
            self.URL, json={**self.PAYLOAD, "email": account.email}, headers=admin_account.headers
        )
        assert_problem(resp, 409, "email_taken")

    def test_payload_is_validated(self, client, admin_account):
        resp = client.post(self.URL, json={"name": "X"}, headers=admin_account.headers)
        body = assert_problem(resp, 422, "validation_error")
        assert {"name", "email", "password"} <= set(body["details"]["errors"])

    def test_plain_users_are_forbidden(self, client, account):
        resp = client.post(self.URL, json=self.PAYLOAD, headers=account.headers)
        assert_problem(resp, 403, "forbidden")


class TestGetUser:
    def test_owner_reads_own_profile(self, client, account):
        resp = client.get(_user_url(account.id), headers=account.headers)
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["id"] == account.id
        assert "createdAt" in data

    def test_user_cannot_read_another_user(self, client, make_account, account):
        other = make_account()
        resp = client.get(_user_url(other.id), headers=account.headers)
        assert_problem(resp, 403, "forbidden")

    def test_admin_reads_anyone(self, client, account, admin_account):
        resp = client.get(_user_url(account.id), headers=admin_account.headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["email"] == account.email

    def test_unknown_id(self, client, admin_account):
        resp = client.get(_user_url(987_654), headers=admin_account.headers)
        assert_problem(resp, 404, "not_found")

    def test_requires_authentication(self, client, account):
        assert_problem(client.get(_user_url(account.id)), 401, "unauthenticated")


class TestUpdateUser:
    def test_update_name_and_email(self, session, client, account):
        resp = client.put(
            _user_url(account.id),
            json={"name": "Renamed", "email": "Renamed@Example.com"},
            headers=account.headers,
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert (data["name"], data["email"]) == ("Renamed", "renamed@example.com")
        assert len(audit_entries(session, AuditAction.UPDATE_USER)) == 1

    def test_role_is_not_accepted_here(self, client, account):
        resp = client.put(_user_url(account.id), json={"role": "ADMIN"}, headers=account.headers)
        body = assert_problem(resp, 422, "validation_error")
        assert "role" in body["details"]["errors"]

    def test_empty_body_is_rejected(self, client, account):
        resp = client.put(_user_url(account.id), json={}, headers=account.headers)
        assert_problem(resp, 422, "validation_error")

    def test_taken_email(self, client, make_account, account):
        other = make_account()
        resp = client.put(
            _user_url(account.id), json={"email": other.email}, headers=account.headers
        )
        assert_problem(resp, 409, "email_taken")


class TestChangeRole:
    def test_admin_assigns_manager(self, session, client, account, admin_account):
        resp = client.patch(
            _user_url(account.id, "/role"), json={"role": "MANAGER"}, headers=admin_account.headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"id": account.id, "role": "MANAGER"}

        [entry] = audit_entries(session, AuditAction.ROLE_CHANGE)
        assert entry.actor_id == admin_account.id
        assert entry.ip == "127.0.0.1"

    def test_admin_cannot_escalate_to_super_admin(self, client, account, admin_account):
        resp = client.patch(
            _user_url(account.id, "/role"),
            json={"role": "SUPER_ADMIN"},
            headers=admin_account.headers,
        )
        assert_problem(resp, 403, "forbidden")

    def test_plain_users_cannot_change_roles(self, client, make_account, account):
        other = make_account()
        resp = client.patch(
            _user_url(other.id, "/role"), json={"role": "MANAGER"}, headers=account.headers
        )
        assert_problem(resp, 403, "forbidden")

    def test_unknown_role(self, client, account, admin_account):
        resp = client.patch(
            _user_url(account.id, "/role"), json={"role": "OVERLORD"}, headers=admin_account.headers
        )
        assert_problem(resp, 400, "invalid_role")

    def test_new_role_shows_up_after_refresh(self, client, account, admin_account):
        refresh_token = _refresh_token(client, account)
        client.patch(
            _user_url(account.id, "/role"), json={"role": "MANAGER"}, headers=admin_account.headers
        )
        resp = client.post(REFRESH, json={"refreshToken": refresh_token})
        assert resp.status_code == 200
        access = resp.get_json()["data"]["accessToken"]

        me = client.get(build_url("/auth/me"), headers={"Authorization": f"Bearer {access}"})
        assert me.get_json()["data"]["role"] == Role.MANAGER.name


class TestChangeStatus:
    def test_deactivation_blocks_sign_in_and_refresh(
        self, session, client, account, admin_account
    ):
        refresh_token = _refresh_token(client, account)

        resp = client.patch(
            _user_url(account.id, "/status"), json={"active": False}, headers=admin_account.headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"id": account.id, "active": False}
        assert session_count(session, account.id) == 0

        sign_in = client.post(
            SIGN_IN, json={"email": account.email, "password": account.password}
        )
        assert_problem(sign_in, 403, "account_inactive")
        refused = client.post(REFRESH, json={"refreshToken": refresh_token})
        assert refused.status_code == 401

    def test_admin_cannot_deactivate_itself(self, client, admin_account):
        resp = client.patch(
            _user_url(admin_account.id, "/status"),
            json={"active": False},
            headers=admin_account.headers,
        )
        assert_problem(resp, 403, "forbidden")

    def test_active_flag_is_required(self, client, account, admin_account):
        resp = client.patch(
            _user_url(account.id, "/status"), json={}, headers=admin_account.headers
        )
        assert_problem(resp, 422, "validation_error")


class TestChangePassword:
    def test_self_service_change_revokes_sessions(self, session, client, account):
        refresh_token = _refresh_token(client, account)

        resp = client.patch(
            _user_url(account.id, "/password"),
            json={"currentPassword": account.password, "newPassword": "Brand-new-1"},
            headers=account.headers,
        )
        assert resp.status_code == 200
        assert session_count(session, account.id) == 0
        assert client.post(REFRESH, json={"refreshToken": refresh_token}).status_code == 401

        old = client.post(SIGN_IN, json={"email": account.email, "password": account.password})
        assert_problem(old, 401, "invalid_password")
        new = client.post(SIGN_IN, json={"email": account.email, "password": "Brand-new-1"})
        assert new.status_code == 200

    def test_wrong_current_password(self, client, account):
        resp = client.patch(
            _user_url(account.id, "/password"),
            json={"currentPassword": "not-it", "newPassword": "Brand-new-1"},
            headers=account.headers,
        )
        assert_problem(resp, 401, "invalid_password")

    def test_admin_reset(self, client, account, admin_account):
        resp = client.patch(
            _user_url(account.id, "/password"),
            json={"newPassword": "Reset-pass-1"},
            headers=admin_account.headers,
        )
        assert resp.status_code == 200
        new = client.post(SIGN_IN, json={"email": account.email, "password": "Reset-pass-1"})
        assert new.status_code == 200


class TestDeleteUser:
    def test_super_admin_deletes(self, session, client, account, super_admin_account):
        resp = client.delete(_user_url(account.id), headers=super_admin_account.headers)
        assert resp.status_code == 200

        gone = client.get(_user_url(account.id), headers=super_admin_account.headers)
        assert_problem(gone, 404, "not_found")
        [entry] = audit_entries(session, AuditAction.DELETE_USER)
        assert entry.target_id == str(account.id)

    def test_admin_cannot_delete(self, client, account, admin_account):
        resp = client.delete(_user_url(account.id), headers=admin_account.headers)
        assert_problem(resp, 403, "forbidden")

    def test_super_admin_cannot_delete_itself(self, client, super_admin_account):
        resp = client.delete(
            _user_url(super_admin_account.id), headers=super_admin_account.headers
        )
        assert_problem(resp, 403, "forbidden")
