"""
Tenant-scoped authorization and visibility resolution.

Decides, for a user acting inside a tenant, which actions they may perform,
which records of an entity type they may see, and to whom they may assign
work. Decisions are read-only and fail closed.
"""
