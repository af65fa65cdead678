import pytest

from subtrack.models.enums import Role
from subtrack.services._shared.errors import ForbiddenError, InvalidRoleError
from subtrack.services._shared.policies.roles import (
    at_least,
    can_assign_role,
    can_manage,
    ensure_can_assign,
    is_owner_or_at_least,
    parse_role,
    require_any_of,
)


class TestAtLeast:
    def test_admin_threshold_includes_super_admin(self):
        assert at_least(Role.ADMIN) == {Role.ADMIN, Role.SUPER_ADMIN}

    def test_read_only_threshold_covers_every_ranked_role(self):
        assert at_least(Role.READ_ONLY) == {
            Role.SUPER_ADMIN,
            Role.ADMIN,
            Role.MANAGER,
            Role.USER,
            Role.READ_ONLY,
        }

    def test_service_is_never_part_of_a_rank_threshold(self):
        assert Role.SERVICE not in at_least(Role.READ_ONLY)
        assert at_least(Role.SERVICE) == {Role.SERVICE}


class TestRequireAnyOf:
    def test_exact_membership(self):
        assert require_any_of(Role.MANAGER, {Role.MANAGER, Role.ADMIN})
        assert not require_any_of(Role.USER, {Role.MANAGER, Role.ADMIN})

    def test_missing_role_is_denied(self):
        assert not require_any_of(None, {Role.USER})


class TestCanAssignRole:
    @pytest.mark.parametrize("target", list(Role))
    def test_super_admin_may_assign_anything(self, target):
        assert can_assign_role(Role.SUPER_ADMIN, target)

    @pytest.mark.parametrize(
        "target,expected",
        [
            (Role.SUPER_ADMIN, False),
            (Role.ADMIN, False),
            (Role.MANAGER, True),
            (Role.USER, True),
            (Role.READ_ONLY, True),
            (Role.SERVICE, False),
        ],
    )
    def test_admin_may_only_assign_below_itself(self, target, expected):
        assert can_assign_role(Role.ADMIN, target) is expected

    def test_manager_cannot_assign_manager(self):
        assert not can_assign_role(Role.MANAGER, Role.MANAGER)
        assert can_assign_role(Role.MANAGER, Role.USER)

    @pytest.mark.parametrize("actor", [Role.USER, Role.READ_ONLY, Role.SERVICE, None])
    def test_unprivileged_actors_assign_nothing(self, actor):
        assert not can_assign_role(actor, Role.READ_ONLY)

    def test_ensure_can_assign_raises_forbidden(self):
        with pytest.raises(ForbiddenError, match="ADMIN cannot assign role SUPER_ADMIN"):
            ensure_can_assign(Role.ADMIN, Role.SUPER_ADMIN)


class TestCanManage:
    def test_admin_cannot_manage_a_peer_admin(self):
        assert not can_manage(Role.ADMIN, Role.ADMIN)
        assert not can_manage(Role.ADMIN, Role.SUPER_ADMIN)

    def test_admin_manages_lower_roles(self):
        assert can_manage(Role.ADMIN, Role.MANAGER)

    def test_super_admin_manages_everyone(self):
        assert can_manage(Role.SUPER_ADMIN, Role.SUPER_ADMIN)


class TestParseRole:
    def test_accepts_enum_and_loose_strings(self):
        assert parse_role(Role.ADMIN) is Role.ADMIN
        assert parse_role(" manager ") is Role.MANAGER

    @pytest.mark.parametrize("value", ["ROOT", "", None, 3])
    def test_rejects_unknown_values(self, value):
        with pytest.raises(InvalidRoleError):
            parse_role(value)


def test_owner_or_at_least():
    assert is_owner_or_at_least(
        identity_id=7, identity_role=Role.USER, resource_owner_id=7, min_role=Role.ADMIN
    )
    assert is_owner_or_at_least(
        identity_id=1, identity_role=Role.SUPER_ADMIN, resource_owner_id=7, min_role=Role.ADMIN
    )
    assert not is_owner_or_at_least(
        identity_id=1, identity_role=Role.MANAGER, resource_owner_id=7, min_role=Role.ADMIN
    )
