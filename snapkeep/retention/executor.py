"""
Safety-gated snapshot deletion.

``zfs destroy`` accepts filesystems and volumes as readily as snapshots, so
every target is checked twice before it is handed to the store: its own kind
tag must say snapshot, and the store must independently report the same.
Names are never used to decide what a target is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from loguru import logger

from snapkeep.exceptions import DeleteFailure, NotASnapshot, SnapkeepError
from snapkeep.store.base import EntityKind, Snapshot, SnapshotStore


@dataclass
class DeletionResult:
    """
    Aggregate result of deleting a list of snapshots.

    Attributes:
        deleted: Names of snapshots that were destroyed
        failures: (snapshot name, error) pairs for targets that were not
    """

    deleted: list[str] = field(default_factory=list)
    failures: list[tuple[str, SnapkeepError]] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)

    @property
    def success(self) -> bool:
        """Check if every deletion succeeded."""
        return len(self.failures) == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "deleted_count": self.deleted_count,
            "deleted": self.deleted,
            "failures": [{"target": name, "error": str(err)} for name, err in self.failures],
        }


class SnapshotExecutor:
    """
    The only component allowed to destroy snapshots.

    Deletions run one at a time, in the order given.
    """

    def __init__(self, store: SnapshotStore):
        self._store = store

    def verify(self, target: Snapshot) -> None:
        """
        Confirm a target is a snapshot.

        Raises:
            NotASnapshot: If the target's tag or the store disagree
        """
        tagged = getattr(target, "kind", None)
        if tagged is not EntityKind.SNAPSHOT:
            raise NotASnapshot(target.name, tagged.value if isinstance(tagged, EntityKind) else None)

        actual = self._store.entity_kind(target.name)
        if actual is not EntityKind.SNAPSHOT:
            raise NotASnapshot(target.name, actual.value if actual else None)

    def delete(self, target: Snapshot) -> None:
        """
        Destroy one snapshot after verifying its kind.

        Raises:
            NotASnapshot: If the target is not verifiably a snapshot
            DeleteFailure: If the store fails to destroy it
        """
        self.verify(target)
        try:
            self._store.destroy_snapshot(target)
        except DeleteFailure:
            raise
        except SnapkeepError as e:
            raise DeleteFailure(target.name, str(e)) from e
        logger.info(f"Destroyed snapshot {target.name}")

    def delete_all(self, targets: Iterable[Snapshot]) -> DeletionResult:
        """
        Destroy each target in turn, recording failures without stopping.

        Args:
            targets: Deletion list of a single dataset

        Returns:
            DeletionResult with deleted names and per-target failures
        """
        result = DeletionResult()

        for target in targets:
            try:
                self.delete(target)
            except SnapkeepError as e:
                logger.error(f"Could not delete {target.name}: {e}")
                result.failures.append((target.name, e))
            except Exception as e:
                logger.exception(f"Unexpected error deleting {target.name}")
                result.failures.append((target.name, DeleteFailure(target.name, str(e))))
            else:
                result.deleted.append(target.name)

        return result
