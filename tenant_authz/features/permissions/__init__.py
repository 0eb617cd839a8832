"""
Permission catalog.

Static, tenant-independent registry of namespaced permission names plus the
per-tenant default grants used when no custom role applies.
"""
