# tourfind Utils Package
"""
Shared helpers: settings loading, host probing, scheduling.
"""
