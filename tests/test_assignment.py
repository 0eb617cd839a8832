"""Tests for assignment scope resolution and assign-to decisions."""

import pytest

from tenant_authz.features.authorization.assignment import AssignmentResolver
from tenant_authz.features.authorization.role_resolver import RoleResolver
from tenant_authz.features.permissions.catalog import Scope


@pytest.fixture
def assignment(store, authority):
    return AssignmentResolver(RoleResolver(store), authority)


class TestAssignmentScope:
    async def test_custom_role_direct_setting(self, store, authority, assignment):
        store.add_member("U2", custom_role_id="R1")
        store.add_custom_role("R1", {"deals": {"visibility": "branch", "assignment_scope": "own"}})
        authority.scopes[("U2", "T1", "deals")] = Scope.ALL

        assert await assignment.get_assignment_scope("U2", "T1", "deals") == Scope.OWN
        assert authority.calls == []

    async def test_falls_back_to_authority(self, store, authority, assignment):
        store.add_member("U1")
        authority.scopes[("U1", "T1", "deals")] = Scope.DEPARTMENT

        assert await assignment.get_assignment_scope("U1", "T1", "deals") == Scope.DEPARTMENT

    async def test_custom_role_without_assignment_setting_falls_back(self, store, authority, assignment):
        store.add_member("U2", custom_role_id="R1")
        store.add_custom_role("R1", {"deals": {"visibility": "all"}})
        authority.scopes[("U2", "T1", "deals")] = Scope.BRANCH

        assert await assignment.get_assignment_scope("U2", "T1", "deals") == Scope.BRANCH

    async def test_admin_scope_is_all(self, store, authority, assignment):
        store.add_member("U3", role="super_admin")

        assert await assignment.get_assignment_scope("U3", "T1", "deals") == Scope.ALL
        assert authority.calls == []

    async def test_authority_failure_degrades_to_own(self, store, authority, assignment):
        store.add_member("U1")
        authority.scopes[("U1", "T1", "deals")] = Scope.ALL
        authority.failing = True

        assert await assignment.get_assignment_scope("U1", "T1", "deals") == Scope.OWN

    async def test_non_member_scope_is_own(self, store, authority, assignment):
        authority.scopes[("U9", "T1", "deals")] = Scope.ALL

        assert await assignment.get_assignment_scope("U9", "T1", "deals") == Scope.OWN


class TestCanAssignTo:
    @pytest.mark.parametrize("setup", ["member", "admin", "custom", "none", "degraded"])
    async def test_self_assignment_is_always_allowed(self, store, authority, assignment, setup):
        if setup == "member":
            store.add_member("U1")
        elif setup == "admin":
            store.add_member("U1", role="admin")
        elif setup == "custom":
            store.add_member("U1", custom_role_id="R1")
            store.add_custom_role("R1", {"deals": {"assignment_scope": "selected_users", "assignment_selected_users": []}})
        elif setup == "degraded":
            store.add_member("U1")
            store.failing.add("get_membership")
        authority.failing = True

        assert await assignment.can_assign_to("U1", "T1", "deals", "U1") is True

    async def test_admin_can_assign_to_anyone(self, store, authority, assignment):
        store.add_member("U3", role="admin")

        assert await assignment.can_assign_to("U3", "T1", "deals", "U5") is True
        assert authority.calls == []

    async def test_all_scope(self, store, assignment):
        store.add_member("U2", custom_role_id="R1")
        store.add_custom_role("R1", {"deals": {"assignment_scope": "all"}})

        assert await assignment.can_assign_to("U2", "T1", "deals", "U5") is True

    async def test_selected_users_scope(self, store, authority, assignment):
        store.add_member("U2", custom_role_id="R1")
        store.add_custom_role("R1", {
            "deals": {"assignment_scope": "selected_users", "assignment_selected_users": ["U7"]},
        })

        assert await assignment.can_assign_to("U2", "T1", "deals", "U7") is True
        assert await assignment.can_assign_to("U2", "T1", "deals", "U8") is False
        assert not any(call[0] == "can_assign" for call in authority.calls)

    async def test_selected_users_from_authority_without_list_denies(self, store, authority, assignment):
        store.add_member("U1")
        authority.scopes[("U1", "T1", "deals")] = Scope.SELECTED_USERS
        authority.allowed.add(("U1", "U7", "T1", "deals"))

        assert await assignment.can_assign_to("U1", "T1", "deals", "U7") is False

    @pytest.mark.parametrize("scope", [Scope.OWN, Scope.DEPARTMENT, Scope.BRANCH])
    async def test_other_scopes_are_delegated(self, store, authority, assignment, scope):
        store.add_member("U2", custom_role_id="R1")
        store.add_custom_role("R1", {"deals": {"assignment_scope": scope.value}})
        authority.allowed.add(("U2", "U5", "T1", "deals"))

        assert await assignment.can_assign_to("U2", "T1", "deals", "U5") is True
        assert await assignment.can_assign_to("U2", "T1", "deals", "U6") is False
        assert ("can_assign", "U2", "U5", "T1", "deals") in authority.calls

    async def test_authority_failure_denies(self, store, authority, assignment):
        store.add_member("U2", custom_role_id="R1")
        store.add_custom_role("R1", {"deals": {"assignment_scope": "department"}})
        authority.allowed.add(("U2", "U5", "T1", "deals"))
        authority.failing = True

        assert await assignment.can_assign_to("U2", "T1", "deals", "U5") is False

    async def test_non_member_cannot_assign_to_others(self, store, authority, assignment):
        authority.scopes[("U9", "T1", "deals")] = Scope.ALL
        authority.allowed.add(("U9", "U5", "T1", "deals"))

        assert await assignment.can_assign_to("U9", "T1", "deals", "U5") is False

    async def test_degraded_resolution_cannot_assign_to_others(self, store, authority, assignment):
        store.add_member("U2", custom_role_id="R1")
        store.add_custom_role("R1", {"deals": {"assignment_scope": "all"}})
        store.failing.add("get_custom_role")

        assert await assignment.can_assign_to("U2", "T1", "deals", "U5") is False
