"""
Runtime configuration for snapkeep.

Values come from environment variables and may be overridden on the command
line.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from snapkeep.store.zfs import DEFAULT_PROPERTY

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class SnapkeepConfig:
    """
    Configuration for garbage collection runs.

    Attributes:
        property_name: ZFS user property holding policies and overrides
        zfs_binary: zfs executable to invoke
        max_workers: Datasets processed concurrently (1 = sequential)
        command_timeout: Seconds to wait for each zfs invocation
        log_level: loguru level for the stderr sink
    """

    property_name: str = DEFAULT_PROPERTY
    zfs_binary: str = "zfs"
    max_workers: int = 4
    command_timeout: float = 60.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        # ZFS user properties must contain a colon and cannot begin with a dash
        if ":" not in self.property_name:
            raise ValueError(
                f"Invalid property name: '{self.property_name}'. "
                "User properties must contain a ':' (e.g. 'module:property')"
            )
        if self.property_name.startswith("-"):
            raise ValueError("property_name must not begin with '-'")
        if not self.zfs_binary:
            raise ValueError("zfs_binary must not be empty")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.command_timeout <= 0:
            raise ValueError("command_timeout must be positive")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: '{self.log_level}'. Valid levels: {', '.join(LOG_LEVELS)}"
            )

    @classmethod
    def from_env(cls) -> SnapkeepConfig:
        """
        Build configuration from ``SNAPKEEP_*`` environment variables.

        Raises:
            ValueError: If a variable holds an invalid value
        """
        try:
            return cls(
                property_name=os.getenv("SNAPKEEP_PROPERTY", DEFAULT_PROPERTY),
                zfs_binary=os.getenv("SNAPKEEP_ZFS_BIN", "zfs"),
                max_workers=int(os.getenv("SNAPKEEP_MAX_WORKERS", "4")),
                command_timeout=float(os.getenv("SNAPKEEP_COMMAND_TIMEOUT", "60")),
                log_level=os.getenv("SNAPKEEP_LOG_LEVEL", "INFO").upper(),
            )
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid snapkeep environment configuration: {e}") from e

    def with_overrides(self, **overrides) -> SnapkeepConfig:
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


_config: SnapkeepConfig | None = None


def get_config() -> SnapkeepConfig:
    """Get the process-wide configuration, loading it from the environment once."""
    global _config
    if _config is None:
        _config = SnapkeepConfig.from_env()
    return _config


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    global _config
    _config = None
