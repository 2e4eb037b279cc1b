"""
Entities and the snapshot store interface.

The retention engine never talks to ZFS directly. It consumes a
SnapshotStore, which lists managed datasets and their snapshots, reports the
kind of any named entity, and destroys snapshots.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class EntityKind(Enum):
    """Kind discriminant carried by every entity the store hands out."""

    FILESYSTEM = "filesystem"
    VOLUME = "volume"
    SNAPSHOT = "snapshot"
    BOOKMARK = "bookmark"

    @classmethod
    def from_zfs(cls, value: str) -> EntityKind | None:
        """Map a ``zfs get type`` value to a kind, None if unrecognised."""
        try:
            return cls(value.strip())
        except ValueError:
            return None


def as_utc(moment: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True)
class Dataset:
    """
    A filesystem or volume that may carry a retention policy.

    Attributes:
        name: Full dataset name, e.g. ``tank/home``
        policy: Raw policy property value, None when the dataset is unmanaged
        kind: FILESYSTEM or VOLUME
    """

    name: str
    policy: str | None = None
    kind: EntityKind = EntityKind.FILESYSTEM

    @property
    def managed(self) -> bool:
        return self.policy is not None


@dataclass(frozen=True)
class Snapshot:
    """
    A point-in-time snapshot of a dataset.

    Attributes:
        name: Full snapshot name, e.g. ``tank/home@2024-01-01``
        dataset: Name of the owning dataset
        created: Creation instant (aware, UTC)
        override: Retention property value on the snapshot from any source, if set
        used_bytes: Space used by the snapshot, for reporting only
        kind: Always SNAPSHOT for snapshots listed by a store
    """

    name: str
    dataset: str
    created: datetime
    override: str | None = None
    used_bytes: int | None = None
    kind: EntityKind = EntityKind.SNAPSHOT

    def __post_init__(self) -> None:
        object.__setattr__(self, "created", as_utc(self.created))


class SnapshotStore(ABC):
    """Capability the garbage collector needs from a snapshot backend."""

    @abstractmethod
    def list_datasets(self) -> list[Dataset]:
        """
        List filesystems and volumes with their policy property.

        Raises:
            PropertyReadError: If the listing fails
        """

    @abstractmethod
    def get_policy(self, dataset: str) -> str | None:
        """
        Read the policy property of one dataset, None when unset.

        Raises:
            PropertyReadError: If the property cannot be read
        """

    @abstractmethod
    def list_snapshots(self, dataset: str) -> list[Snapshot]:
        """
        List the snapshots belonging directly to a dataset.

        Raises:
            PropertyReadError: If the listing fails
        """

    @abstractmethod
    def entity_kind(self, name: str) -> EntityKind | None:
        """
        Look up the kind of a named entity, None if it does not exist.

        Raises:
            PropertyReadError: If the lookup fails
        """

    @abstractmethod
    def destroy_snapshot(self, snapshot: Snapshot) -> None:
        """
        Destroy a snapshot. Only SnapshotExecutor may call this.

        Raises:
            DeleteFailure: If the backend reports an error
        """
