"""Tests for the per-request AuthorizationContext."""

from dataclasses import dataclass

from tenant_authz.features.authorization.schemas import EntityOwnership
from tenant_authz.features.permissions.catalog import Scope


@dataclass
class Deal:
    id: str
    owner_id: str


def ownership(deal: Deal) -> EntityOwnership:
    return EntityOwnership(owner_user_id=deal.owner_id)


class TestPermissionChecks:
    async def test_has_permission_and_any(self, store, build_context):
        store.add_member("U1")
        store.grant("member", "crm.deals.view")

        ctx = await build_context("U1")

        assert ctx.has_permission("crm.deals.view") is True
        assert ctx.has_permission("crm.deals.delete") is False
        assert ctx.has_any_permission(["crm.deals.delete", "crm.deals.view"]) is True
        assert ctx.has_any_permission(["crm.deals.delete"]) is False
        assert ctx.has_any_permission([]) is False
        assert ctx.has_all_permissions(["crm.deals.view", "crm.deals.delete"]) is False

    async def test_admin_passes_every_check(self, store, build_context):
        store.add_member("U3", role="admin")

        ctx = await build_context("U3")

        assert ctx.is_admin is True
        assert ctx.has_permission("not.in.catalog") is True
        assert ctx.has_any_permission(["x.y"]) is True
        assert await ctx.can_view("anything", EntityOwnership(owner_user_id="someone-else")) is True
        assert await ctx.can_assign_to("anything", "someone-else") is True

    async def test_scope_queries(self, store, authority, build_context):
        store.add_member("U2", custom_role_id="R1")
        store.add_custom_role("R1", {"deals": {"visibility": "branch", "assignment_scope": "own"}})

        ctx = await build_context("U2")

        assert await ctx.get_visibility_level("deals") == Scope.BRANCH
        assert await ctx.get_assignment_scope("deals") == Scope.OWN

    async def test_context_resolves_once(self, store, build_context):
        store.add_member("U1")
        store.grant("member", "deals.visibility.all")

        ctx = await build_context("U1")
        await ctx.get_visibility_level("deals")
        await ctx.can_view("deals", EntityOwnership(owner_user_id="U5"))

        assert store.calls["get_membership"] == 1


class TestFilterVisible:
    async def test_keeps_visible_items_in_order(self, store, build_context):
        store.add_member("A")
        store.grant("member", "deals.visibility.department")
        store.place("A", "D1")
        store.place("B", "D1")
        store.place("C", "D2")
        deals = [Deal("1", "C"), Deal("2", "A"), Deal("3", "B"), Deal("4", "nobody")]

        ctx = await build_context("A")
        visible = await ctx.filter_visible("deals", deals, ownership)

        assert [d.id for d in visible] == ["2", "3"]

    async def test_admin_keeps_everything(self, store, build_context):
        store.add_member("U3", role="admin")
        deals = [Deal("1", "X"), Deal("2", "Y")]

        ctx = await build_context("U3")

        assert await ctx.filter_visible("deals", deals, ownership) == deals

    async def test_org_outage_hides_everything_but_nothing_raises(self, store, build_context):
        store.add_member("A")
        store.grant("member", "deals.visibility.department")
        store.place("A", "D1")
        store.place("B", "D1")
        store.failing.add("get_org_assignment")

        ctx = await build_context("A")

        assert await ctx.filter_visible("deals", [Deal("1", "B")], ownership) == []


class TestLegacyNames:
    async def test_legacy_names_are_derived_not_granted(self, store, build_context):
        store.add_member("U2", custom_role_id="R1")
        store.add_custom_role("R1", {"reports": {"generate": True, "read": True}})

        ctx = await build_context("U2")

        assert ctx.legacy_permission_names() == ["reports_create", "reports_generate", "reports_read", "reports_view"]
        assert "reports_generate" not in ctx.permissions
