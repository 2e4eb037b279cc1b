"""
snapkeep - retention policies and garbage collection for ZFS snapshots.

Keeps the newest snapshot in each of the last N hours, days, weeks, months
and years, and destroys the rest.
"""

try:
    from importlib.metadata import version

    __version__ = version("snapkeep")
except Exception:
    __version__ = "0.0.0"  # Fallback for development
