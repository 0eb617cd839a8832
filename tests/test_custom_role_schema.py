"""Tests for custom role permission map validation."""

import pytest
from pydantic import ValidationError

from tenant_authz.features.authorization.exceptions import Malformed
from tenant_authz.features.custom_roles.schemas import ModulePolicy, parse_permission_map
from tenant_authz.features.permissions.catalog import Scope


class TestModulePolicy:
    def test_boolean_keys_become_actions(self):
        policy = ModulePolicy.model_validate(
            {"visibility": "branch", "assignment_scope": "own", "read": True, "delete": False}
        )
        assert policy.visibility == Scope.BRANCH
        assert policy.assignment_scope == Scope.OWN
        assert policy.actions == {"read": True, "delete": False}
        assert policy.granted_actions() == ["read"]

    def test_selected_user_lists(self):
        policy = ModulePolicy.model_validate(
            {"visibility": "selected_users", "visibility_selected_users": ["U7", "U8"]}
        )
        assert policy.visibility_selected_users == ["U7", "U8"]
        assert policy.assignment_selected_users is None

    def test_non_boolean_unknown_keys_are_ignored(self):
        policy = ModulePolicy.model_validate({"label": "Deals", "edit": True})
        assert policy.actions == {"edit": True}

    def test_unknown_scope_is_rejected(self):
        with pytest.raises(ValidationError):
            ModulePolicy.model_validate({"visibility": "everyone"})


class TestParsePermissionMap:
    def test_valid_map(self):
        modules = parse_permission_map({"deals": {"visibility": "all"}, "todos": {"create": True}})
        assert set(modules) == {"deals", "todos"}
        assert modules["deals"].visibility == Scope.ALL

    def test_malformed_entries_are_dropped(self):
        modules = parse_permission_map({
            "deals": {"visibility": "everyone"},
            "sites": "yes",
            "contacts": {"visibility": "own"},
        })
        assert list(modules) == ["contacts"]

    def test_non_object_map_is_malformed(self):
        with pytest.raises(Malformed):
            parse_permission_map(["deals"], role_id="R1")

    def test_missing_map_is_empty(self):
        assert parse_permission_map(None) == {}
