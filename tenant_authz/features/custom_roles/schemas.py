"""
Validated form of a custom role permission map.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from tenant_authz.features.authorization.exceptions import Malformed
from tenant_authz.features.permissions.catalog import Scope
from tenant_authz.utils import get_logger


log = get_logger(__name__)

# Keys of a module entry that are settings rather than action flags
_SETTING_KEYS = frozenset({
    "visibility",
    "assignment_scope",
    "visibility_selected_users",
    "assignment_selected_users",
    "actions",
})


class ModulePolicy(BaseModel):
    """
    Policy of one business module inside a custom role.
    
    Every boolean key of the raw entry that is not a known setting becomes an
    action flag, so `{"read": true, "delete": false}` yields
    `actions == {"read": True, "delete": False}`.
    """
    visibility: Optional[Scope] = None
    assignment_scope: Optional[Scope] = None
    visibility_selected_users: Optional[List[str]] = None
    assignment_selected_users: Optional[List[str]] = None
    actions: Dict[str, bool] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def collect_action_flags(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        settings = {key: value for key, value in data.items() if key in _SETTING_KEYS}
        actions = dict(settings.pop("actions", None) or {})
        for key, value in data.items():
            if key not in _SETTING_KEYS and isinstance(value, bool):
                actions[key] = value
        settings["actions"] = actions
        return settings

    def granted_actions(self) -> List[str]:
        return [action for action, granted in self.actions.items() if granted]


class CustomRolePolicy(BaseModel):
    """A loaded, validated custom role."""
    id: str
    tenant_id: str
    active: bool = True
    modules: Dict[str, ModulePolicy] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def module(self, entity_type: str) -> Optional[ModulePolicy]:
        return self.modules.get(entity_type)


def parse_permission_map(raw: Any, role_id: str = "?") -> Dict[str, ModulePolicy]:
    """
    Validate a raw custom role permission map.
    
    Args:
        raw: JSON value stored on the role
        role_id: used for log messages only
    
    Returns:
        Mapping of UI module name to ModulePolicy. Entries that fail
        validation are dropped.
    
    Raises:
        Malformed: if the map itself is not an object
    """
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise Malformed(f"Custom role {role_id} permissions must be an object, got {type(raw).__name__}")
    
    modules: Dict[str, ModulePolicy] = {}
    for module, entry in raw.items():
        if not isinstance(entry, dict):
            log.warning("Custom role %s: ignoring non-object entry for module %r", role_id, module)
            continue
        try:
            modules[module] = ModulePolicy.model_validate(entry)
        except ValidationError as e:
            log.warning("Custom role %s: ignoring malformed entry for module %r: %s", role_id, module, e)
    return modules
