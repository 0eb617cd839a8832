"""
Tenant-defined roles that override the default role grants per business module.
"""
