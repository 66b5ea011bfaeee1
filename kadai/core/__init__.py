"""
Core logic for kadai: discovery, command resolution, plugin fetch/cache/sync.
"""
