"""
Shared helpers for kadai (logging, errors, subprocess and PATH lookups).
"""
