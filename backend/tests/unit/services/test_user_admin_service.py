from datetime import timedelta

import pytest
from sqlalchemy import select

from subtrack.infra.sql.sql_session_store import SQLAlchemySessionStore
from subtrack.models.enums import AuditAction, Role
from subtrack.models.user import User
from subtrack.services._shared.base import ServiceContext
from subtrack.services._shared.errors import (
    EmailTakenError,
    ForbiddenError,
    InvalidRoleError,
    NotFoundError,
)
from subtrack.services.identity.dto import RegisterIn
from subtrack.services.users.service import UserAdminService
from tests.factories.user import UserFactory
from tests.helpers.queries import audit_entries, session_count


def _admin_service(actor) -> UserAdminService:
    return UserAdminService(
        sessions=SQLAlchemySessionStore(),
        ctx=ServiceContext(actor_id=actor.id, actor_role=actor.role),
    )


@pytest.fixture
def admin(session):
    return UserFactory(role=Role.ADMIN)


@pytest.fixture
def super_admin(session):
    return UserFactory(role=Role.SUPER_ADMIN)


class TestListUsers:
    def test_filters_and_wraps_identities(self, admin):
        manager = UserFactory(role=Role.MANAGER)
        UserFactory(role=Role.MANAGER, active=False)
        UserFactory()

        page = _admin_service(admin).list_users({"role": "manager", "active": True})

        assert page.total == 1
        [item] = page.items
        assert (item.id, item.role, item.active) == (manager.id, Role.MANAGER, True)
        assert not hasattr(item, "password_hash")

    def test_sorts_through_the_whitelist(self, admin):
        UserFactory(name="Zed Person")
        UserFactory(name="Amy Person")

        page = _admin_service(admin).list_users(sort=["-name", "password_hash"], limit=2)

        assert page.total == 3
        assert [i.name for i in page.items] == ["Zed Person", admin.name]

    def test_limit_is_clamped(self, admin):
        page = _admin_service(admin).list_users(page=0, limit=1_000)
        assert (page.page, page.limit) == (1, 100)

    def test_unknown_role_filter(self, admin):
        with pytest.raises(InvalidRoleError):
            _admin_service(admin).list_users({"role": "OVERLORD"})

    def test_managers_are_forbidden(self):
        with pytest.raises(ForbiddenError):
            _admin_service(UserFactory(role=Role.MANAGER)).list_users()


class TestCreateUser:
    DTO = RegisterIn(name="New Hire", email="New.Hire@Example.com", password="Welcome-123")

    def test_admin_creates_a_manager(self, session, admin):
        out = _admin_service(admin).create_user(self.DTO, "manager")

        assert (out.email, out.role, out.active) == ("new.hire@example.com", Role.MANAGER, True)
        user = session.execute(select(User).where(User.id == out.id)).scalar_one()
        assert user.verify_password("Welcome-123")
        [entry] = audit_entries(session, AuditAction.CREATE_USER)
        assert (entry.actor_id, entry.target_id) == (admin.id, str(out.id))
        assert entry.details == {"email": "new.hire@example.com", "role": "MANAGER"}
        assert audit_entries(session, AuditAction.ROLE_CHANGE) == []

    @pytest.mark.parametrize("target", [Role.ADMIN, Role.SUPER_ADMIN, Role.SERVICE])
    def test_admin_cannot_create_privileged_roles(self, session, admin, target):
        with pytest.raises(ForbiddenError):
            _admin_service(admin).create_user(self.DTO, target)
        stmt = select(User).where(User.email == "new.hire@example.com")
        assert session.execute(stmt).first() is None
        assert audit_entries(session) == []

    def test_super_admin_creates_a_service_identity(self, super_admin):
        assert _admin_service(super_admin).create_user(self.DTO, "SERVICE").role is Role.SERVICE

    def test_managers_are_forbidden(self):
        with pytest.raises(ForbiddenError):
            _admin_service(UserFactory(role=Role.MANAGER)).create_user(self.DTO)

    def test_unknown_role(self, admin):
        with pytest.raises(InvalidRoleError):
            _admin_service(admin).create_user(self.DTO, "OVERLORD")

    def test_taken_email(self, admin):
        UserFactory(email="new.hire@example.com")
        with pytest.raises(EmailTakenError):
            _admin_service(admin).create_user(self.DTO)


class TestChangeRole:
    def test_admin_promotes_a_user_to_manager(self, session, admin):
        user = UserFactory()
        out = _admin_service(admin).change_role(user.id, "manager")

        assert (out.id, out.role) == (user.id, Role.MANAGER)
        assert user.role is Role.MANAGER
        [entry] = audit_entries(session, AuditAction.ROLE_CHANGE)
        assert entry.actor_id == admin.id
        assert entry.details == {"from": "USER", "to": "MANAGER"}

    @pytest.mark.parametrize("target", [Role.ADMIN, Role.SUPER_ADMIN, Role.SERVICE])
    def test_admin_cannot_escalate(self, session, admin, target):
        user = UserFactory()
        with pytest.raises(ForbiddenError):
            _admin_service(admin).change_role(user.id, target)
        assert user.role is Role.USER
        assert audit_entries(session) == []

    def test_admin_cannot_demote_a_peer(self, admin):
        peer = UserFactory(role=Role.ADMIN)
        with pytest.raises(ForbiddenError):
            _admin_service(admin).change_role(peer.id, Role.USER)

    def test_super_admin_may_grant_admin(self, super_admin):
        user = UserFactory()
        assert _admin_service(super_admin).change_role(user.id, Role.ADMIN).role is Role.ADMIN

    def test_unknown_role_is_rejected_before_anything_else(self, session):
        reader = UserFactory(role=Role.READ_ONLY)
        with pytest.raises(InvalidRoleError):
            _admin_service(reader).change_role(reader.id, "OVERLORD")

    @pytest.mark.parametrize("role", [Role.MANAGER, Role.USER, Role.SERVICE])
    def test_non_admins_are_forbidden(self, role):
        actor, user = UserFactory(role=role), UserFactory()
        with pytest.raises(ForbiddenError):
            _admin_service(actor).change_role(user.id, Role.READ_ONLY)

    def test_unknown_identity(self, admin):
        with pytest.raises(NotFoundError):
            _admin_service(admin).change_role(424_242, Role.USER)


class TestSetActive:
    def test_deactivation_revokes_sessions(self, session, admin):
        user = UserFactory()
        store = SQLAlchemySessionStore()
        store.grant(user.id, timedelta(days=7))
        store.grant(user.id, timedelta(days=7))

        out = _admin_service(admin).set_active(user.id, False)
        assert out.active is False
        assert user.active is False
        assert session_count(session, user.id) == 0
        [entry] = audit_entries(session, AuditAction.UPDATE_USER)
        assert entry.details == {"active": False}

    def test_reactivation(self, session, admin):
        user = UserFactory(active=False)
        assert _admin_service(admin).set_active(user.id, True).active is True
        assert user.active is True

    def test_no_op_writes_no_audit_entry(self, session, admin):
        user = UserFactory()
        _admin_service(admin).set_active(user.id, True)
        assert audit_entries(session) == []

    def test_self_deactivation_is_forbidden(self, admin):
        with pytest.raises(ForbiddenError, match="your own account"):
            _admin_service(admin).set_active(admin.id, False)

    def test_admin_cannot_deactivate_super_admin(self, admin, super_admin):
        with pytest.raises(ForbiddenError):
            _admin_service(admin).set_active(super_admin.id, False)


class TestDelete:
    def test_super_admin_deletes_and_audit_survives(self, session, super_admin):
        user = UserFactory(email="gone@example.com")
        user_id = user.id
        SQLAlchemySessionStore().grant(user_id, timedelta(days=7))

        _admin_service(super_admin).delete(user_id)

        assert session.execute(select(User).where(User.id == user_id)).first() is None
        assert session_count(session, user_id) == 0
        [entry] = audit_entries(session, AuditAction.DELETE_USER)
        assert entry.target_id == str(user_id)
        assert entry.details == {"email": "gone@example.com"}

    def test_admin_cannot_delete(self, admin):
        user = UserFactory()
        with pytest.raises(ForbiddenError):
            _admin_service(admin).delete(user.id)

    def test_super_admin_cannot_delete_itself(self, super_admin):
        with pytest.raises(ForbiddenError):
            _admin_service(super_admin).delete(super_admin.id)

    def test_unknown_identity(self, super_admin):
        with pytest.raises(NotFoundError):
            _admin_service(super_admin).delete(424_242)
