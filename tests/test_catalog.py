"""Tests for permission naming and the declared lookup tables."""

from tenant_authz.features.permissions.catalog import (
    SCOPE_PRECEDENCE,
    Scope,
    action_permission,
    assignment_permission,
    broadest,
    legacy_names,
    module_for,
    permission_prefixes,
    visibility_permission,
)


class TestNaming:
    def test_action_permission_applies_read_alias(self):
        assert action_permission("crm.deals", "read") == "crm.deals.view"
        assert action_permission("crm.deals", "delete") == "crm.deals.delete"

    def test_scope_permissions(self):
        assert visibility_permission("crm.contacts", Scope.BRANCH) == "crm.contacts.visibility.branch"
        assert assignment_permission("deals", "selected_users") == "deals.assignment.selected_users"

    def test_companies_and_customers_share_a_module(self):
        assert module_for("companies") == "crm.customers"
        assert module_for("customers") == "crm.customers"
        assert module_for("leads") == "crm.contacts"
        assert module_for("unknown") is None


class TestPrefixes:
    def test_mapped_entity_type_checks_module_then_raw(self):
        assert permission_prefixes("deals") == ("crm.deals", "deals")

    def test_identity_mapping_is_not_duplicated(self):
        assert permission_prefixes("todos") == ("todos",)

    def test_unmapped_entity_type_uses_raw_name(self):
        assert permission_prefixes("invoices") == ("invoices",)


class TestPrecedence:
    def test_order_is_broadest_first(self):
        assert SCOPE_PRECEDENCE == (
            Scope.ALL, Scope.SELECTED_USERS, Scope.BRANCH, Scope.DEPARTMENT, Scope.OWN
        )

    def test_broadest(self):
        assert broadest([Scope.OWN, Scope.BRANCH, Scope.DEPARTMENT]) == Scope.BRANCH
        assert broadest([Scope.OWN]) == Scope.OWN
        assert broadest([]) is None


class TestLegacyNames:
    def test_reports_actions_get_underscore_names(self):
        names = set(legacy_names(["reports.generate", "reports.view", "crm.deals.view"]))
        assert names == {"reports_generate", "reports_create", "reports_view", "reports_read"}

    def test_scope_grants_have_no_legacy_form(self):
        assert list(legacy_names(["reports.visibility.all"])) == []
