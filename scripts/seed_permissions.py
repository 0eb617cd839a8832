"""
Seed script to populate the permission catalog and default role grants.

Run this script after database initialization to create:
- The catalog of action, visibility and assignment permissions
- Default member / owner grants for every existing tenant

Usage:
    python -m scripts.seed_permissions
"""
import asyncio
from typing import Dict, List, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_authz.core.database.engine import AsyncSessionLocal, init_db
from tenant_authz.features.permissions.catalog import (
    SCOPE_PRECEDENCE,
    assignment_permission,
    visibility_permission,
)
from tenant_authz.features.permissions.models import Permission, RolePermission
from tenant_authz.features.tenants.models import MembershipRole, Tenant
from tenant_authz.utils import get_logger


log = get_logger(__name__)


CRUD_MODULES: Dict[str, str] = {
    "crm.customers": "customers",
    "crm.contacts": "contacts",
    "crm.deals": "deals",
    "crm.sites": "sites",
    "crm.activities": "activities",
    "projects": "projects",
    "devices": "devices",
    "todos": "todos",
}

SCOPED_ENTITY_TYPES: Tuple[str, ...] = ("deals", "leads", "todos", "activities")


def build_default_permissions() -> List[Tuple[str, str, str]]:
    """(name, module, description) for every catalog entry."""
    permissions = []
    for module, label in CRUD_MODULES.items():
        for action in ("view", "create", "edit", "delete"):
            permissions.append((f"{module}.{action}", module, f"{action.capitalize()} {label}"))
    
    permissions += [
        ("reports.view", "reports", "View reports"),
        ("reports.generate", "reports", "Generate reports"),
        ("reports.export", "reports", "Export reports"),
        ("admin.users.manage", "admin", "Manage users and roles"),
        ("admin.permissions.manage", "admin", "Manage permissions"),
        ("admin.tenants.manage", "admin", "Manage tenant settings"),
    ]
    
    for entity_type in SCOPED_ENTITY_TYPES:
        for scope in SCOPE_PRECEDENCE:
            permissions.append((
                visibility_permission(entity_type, scope),
                entity_type,
                f"Can view {entity_type} with {scope.value} scope",
            ))
            permissions.append((
                assignment_permission(entity_type, scope),
                entity_type,
                f"Can assign {entity_type} with {scope.value} scope",
            ))
    return permissions


DEFAULT_ROLE_GRANTS: Dict[MembershipRole, List[str]] = {
    MembershipRole.OWNER: [
        "crm.customers.view", "crm.customers.create", "crm.customers.edit",
        "crm.contacts.view", "crm.contacts.create", "crm.contacts.edit",
        "crm.deals.view", "crm.deals.create", "crm.deals.edit",
        "crm.sites.view", "crm.activities.view", "crm.activities.create",
        "projects.view", "todos.view", "todos.create", "reports.view",
        "deals.visibility.all", "todos.visibility.all",
    ],
    MembershipRole.MEMBER: [
        "crm.customers.view", "crm.contacts.view", "crm.contacts.create",
        "crm.deals.view", "crm.deals.create", "crm.deals.edit",
        "crm.sites.view", "crm.activities.view", "crm.activities.create",
        "projects.view", "todos.view", "todos.create", "todos.edit",
        "deals.visibility.own", "todos.visibility.own",
    ],
}


async def seed_permissions(db: AsyncSession) -> Dict[str, Permission]:
    """Create missing catalog entries and return the catalog by name."""
    log.info("Seeding permissions...")
    
    result = await db.execute(select(Permission))
    existing = {p.name: p for p in result.scalars().all()}
    
    created = 0
    for name, module, description in build_default_permissions():
        if name in existing:
            continue
        permission = Permission(name=name, module=module, description=description)
        db.add(permission)
        existing[name] = permission
        created += 1
    
    await db.flush()
    log.info(f"Created {created} new permissions")
    return existing


async def seed_role_grants(db: AsyncSession, tenant_id: str, catalog: Dict[str, Permission]) -> int:
    """Grant the default permissions of every base role inside one tenant."""
    result = await db.execute(select(RolePermission).where(RolePermission.tenant_id == tenant_id))
    granted = {(rp.role, rp.permission_id) for rp in result.scalars().all()}
    
    created = 0
    for role, names in DEFAULT_ROLE_GRANTS.items():
        for name in names:
            permission = catalog.get(name)
            if permission is None:
                log.warning(f"Permission not found: {name}")
                continue
            if (role, permission.id) in granted:
                continue
            db.add(RolePermission(tenant_id=tenant_id, role=role, permission_id=permission.id))
            created += 1
    return created


async def main():
    """Main seeding function."""
    log.info("Starting permission seeding...")
    
    await init_db()
    
    async with AsyncSessionLocal() as db:
        try:
            catalog = await seed_permissions(db)
            
            result = await db.execute(select(Tenant))
            for tenant in result.scalars().all():
                created = await seed_role_grants(db, tenant.id, catalog)
                log.info(f"Tenant {tenant.name}: {created} new role grants")
            
            await db.commit()
            log.info("Permission seeding completed successfully!")
        except Exception as e:
            log.error(f"Error during seeding: {e}")
            await db.rollback()
            raise


if __name__ == "__main__":
    asyncio.run(main())
