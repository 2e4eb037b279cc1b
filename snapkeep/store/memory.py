"""In-memory snapshot store, used by tests and dry evaluations."""

from __future__ import annotations

import threading
from typing import Iterable

from snapkeep.exceptions import DeleteFailure, PropertyReadError
from snapkeep.store.base import Dataset, EntityKind, Snapshot, SnapshotStore


class InMemorySnapshotStore(SnapshotStore):
    """
    Snapshot store backed by plain dictionaries.

    Failures can be injected per name to exercise error handling:
    ``unreadable`` datasets raise PropertyReadError when read, and
    ``undeletable`` snapshots raise DeleteFailure when destroyed.
    """

    def __init__(
        self,
        datasets: Iterable[Dataset] = (),
        snapshots: Iterable[Snapshot] = (),
        unreadable: Iterable[str] = (),
        undeletable: Iterable[str] = (),
    ):
        self._lock = threading.Lock()
        self._datasets = {d.name: d for d in datasets}
        self._snapshots = {s.name: s for s in snapshots}
        self._kinds: dict[str, EntityKind] = {}
        self.unreadable = set(unreadable)
        self.undeletable = set(undeletable)
        self.destroyed: list[str] = []

    def add_dataset(self, dataset: Dataset) -> None:
        with self._lock:
            self._datasets[dataset.name] = dataset

    def add_snapshot(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshots[snapshot.name] = snapshot

    def set_kind(self, name: str, kind: EntityKind) -> None:
        """Force the kind reported for a name."""
        with self._lock:
            self._kinds[name] = kind

    def list_datasets(self) -> list[Dataset]:
        with self._lock:
            return sorted(self._datasets.values(), key=lambda d: d.name)

    def get_policy(self, dataset: str) -> str | None:
        if dataset in self.unreadable:
            raise PropertyReadError(dataset, "injected read failure")
        with self._lock:
            if dataset not in self._datasets:
                raise PropertyReadError(dataset, "dataset does not exist")
            return self._datasets[dataset].policy

    def list_snapshots(self, dataset: str) -> list[Snapshot]:
        if dataset in self.unreadable:
            raise PropertyReadError(dataset, "injected read failure")
        with self._lock:
            return [s for s in self._snapshots.values() if s.dataset == dataset]

    def entity_kind(self, name: str) -> EntityKind | None:
        with self._lock:
            if name in self._kinds:
                return self._kinds[name]
            if name in self._snapshots:
                return EntityKind.SNAPSHOT
            if name in self._datasets:
                return self._datasets[name].kind
            return None

    def destroy_snapshot(self, snapshot: Snapshot) -> None:
        if snapshot.name in self.undeletable:
            raise DeleteFailure(snapshot.name, "injected delete failure")
        with self._lock:
            if self._snapshots.pop(snapshot.name, None) is None:
                raise DeleteFailure(snapshot.name, "snapshot does not exist")
            self.destroyed.append(snapshot.name)
