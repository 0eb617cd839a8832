"""
Tenants and the per-tenant membership records that carry each user's role.
"""
