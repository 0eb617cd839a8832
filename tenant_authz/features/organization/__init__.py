"""
Branch / department structure and per-user assignment policy rows.
"""
