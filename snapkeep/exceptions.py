"""
Error types raised by snapkeep.

Every error derives from SnapkeepError so callers can report failures of a
single dataset without aborting the rest of a garbage collection run.
"""

from __future__ import annotations


class SnapkeepError(Exception):
    """Base class for all snapkeep errors."""

    pass


class InvalidPolicy(SnapkeepError, ValueError):
    """Raised when a retention policy string cannot be parsed."""

    def __init__(self, spec: str | None, reason: str):
        self.spec = spec
        self.reason = reason
        super().__init__(f"Invalid retention policy {spec!r}: {reason}")


class PropertyReadError(SnapkeepError):
    """Raised when the snapshot store cannot read a property or listing."""

    def __init__(self, target: str, reason: str):
        self.target = target
        self.reason = reason
        super().__init__(f"Failed to read from {target}: {reason}")


class NotASnapshot(SnapkeepError):
    """Raised when a delete target is not verifiably a snapshot."""

    def __init__(self, target: str, kind: str | None):
        self.target = target
        self.kind = kind
        super().__init__(f"Refusing to destroy {target}: kind is {kind or 'unknown'}, not snapshot")


class DeleteFailure(SnapkeepError):
    """Raised when the snapshot store fails to destroy a snapshot."""

    def __init__(self, target: str, reason: str):
        self.target = target
        self.reason = reason
        super().__init__(f"Failed to destroy {target}: {reason}")
