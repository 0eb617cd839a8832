"""
Declared lookup tables and naming rules for permission names.

Permission names are only ever built here. Callers ask for
`visibility_permission("crm.deals", Scope.BRANCH)` instead of formatting
strings themselves.
"""
import enum
from typing import Iterable, Iterator, Optional


class Scope(str, enum.Enum):
    """Breadth of records a user may see or hand work to."""
    ALL = "all"
    SELECTED_USERS = "selected_users"
    BRANCH = "branch"
    DEPARTMENT = "department"
    OWN = "own"


# Resolution order, broadest first. Storage does not order scopes, resolution does.
SCOPE_PRECEDENCE: tuple[Scope, ...] = (
    Scope.ALL,
    Scope.SELECTED_USERS,
    Scope.BRANCH,
    Scope.DEPARTMENT,
    Scope.OWN,
)

# Custom-role UI module -> catalog module
MODULE_MAP: dict[str, str] = {
    "companies": "crm.customers",
    "customers": "crm.customers",
    "contacts": "crm.contacts",
    "leads": "crm.contacts",
    "deals": "crm.deals",
    "sites": "crm.sites",
    "activities": "crm.activities",
    "projects": "projects",
    "devices": "devices",
    "todos": "todos",
    "reports": "reports",
}

ACTION_ALIASES: dict[str, str] = {
    "read": "view",
}

# Entity types whose visibility a todo list inherits when todos has no grant of its own
TODOS_ENTITY_TYPE = "todos"
BROAD_ENTITY_TYPES: tuple[str, ...] = ("companies", "contacts", "deals", "sites", "projects")
# Scopes a todo list may inherit; anything else leaves todos at `own`
INHERITABLE_SCOPES: frozenset[Scope] = frozenset({Scope.ALL, Scope.BRANCH, Scope.DEPARTMENT})

# Modules whose actions are also consumed in the legacy `<module>_<action>` format
LEGACY_UNDERSCORE_MODULES: dict[str, str] = {
    "reports": "reports",
}
LEGACY_EXTRA_ALIASES: dict[str, tuple[str, ...]] = {
    "reports_generate": ("reports_create",),
    "reports_view": ("reports_read",),
}


def module_for(entity_type: str) -> Optional[str]:
    """Catalog module for a UI module / entity type, or None when it is not mapped."""
    return MODULE_MAP.get(entity_type)


def canonical_action(action: str) -> str:
    return ACTION_ALIASES.get(action, action)


def action_permission(module: str, action: str) -> str:
    return f"{module}.{canonical_action(action)}"


def visibility_permission(module: str, scope: Scope) -> str:
    return f"{module}.visibility.{Scope(scope).value}"


def assignment_permission(module: str, scope: Scope) -> str:
    return f"{module}.assignment.{Scope(scope).value}"


def permission_prefixes(entity_type: str) -> tuple[str, ...]:
    """
    Namespaces that may carry scope grants for an entity type.

    Custom roles emit grants under the catalog module (`crm.contacts`), while
    the seeded catalog also holds grants under the bare entity type
    (`deals.visibility.all`). Both are honored, catalog module first.
    """
    prefixes = []
    module = module_for(entity_type)
    if module:
        prefixes.append(module)
    if entity_type not in prefixes:
        prefixes.append(entity_type)
    return tuple(prefixes)


def broadest(scopes: Iterable[Scope]) -> Optional[Scope]:
    """The broadest of the given scopes by resolution order, None for an empty input."""
    present = set(scopes)
    for scope in SCOPE_PRECEDENCE:
        if scope in present:
            return scope
    return None


def legacy_names(permission_names: Iterable[str]) -> Iterator[str]:
    """
    Translate canonical grants into the underscore format some consumers still read.

    `reports.generate` becomes `reports_generate` and `reports_create`.
    """
    prefixes = {f"{module}.": legacy for module, legacy in LEGACY_UNDERSCORE_MODULES.items()}
    for name in permission_names:
        for prefix, legacy in prefixes.items():
            if not name.startswith(prefix):
                continue
            action = name[len(prefix):]
            if "." in action:
                # visibility / assignment scopes have no legacy form
                continue
            legacy_name = f"{legacy}_{action}"
            yield legacy_name
            yield from LEGACY_EXTRA_ALIASES.get(legacy_name, ())
