"""Startup validation for snapkeep.

Provides fail-fast validation of configuration and the zfs tool.
"""

from __future__ import annotations

import shutil

from loguru import logger

from snapkeep.utils.config import SnapkeepConfig


def validate_startup(config: SnapkeepConfig) -> list[str]:
    """
    Validate the environment before touching any dataset.

    Args:
        config: Effective configuration

    Returns:
        List of error messages. Empty if all valid.
    """
    errors = []

    if shutil.which(config.zfs_binary) is None:
        errors.append(f"zfs executable not found: {config.zfs_binary}")

    return errors


def fail_fast_startup(config: SnapkeepConfig) -> None:
    """
    Validate startup and raise if invalid.

    Raises:
        RuntimeError: If the environment cannot run garbage collection.
    """
    errors = validate_startup(config)
    if errors:
        error_msg = "Startup validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        logger.error(error_msg)
        raise RuntimeError(error_msg)

    logger.debug("Startup validation passed")
