"""
Snapshot store backends for snapkeep.

Usage:
    from snapkeep.store import ZfsSnapshotStore, InMemorySnapshotStore

    store = ZfsSnapshotStore(property_name="at.rollc.at:snapkeep")
    for dataset in store.list_datasets():
        print(dataset.name, dataset.policy)
"""

from snapkeep.store.base import Dataset, EntityKind, Snapshot, SnapshotStore, as_utc
from snapkeep.store.memory import InMemorySnapshotStore
from snapkeep.store.zfs import DEFAULT_PROPERTY, ZfsSnapshotStore

__all__ = [
    "DEFAULT_PROPERTY",
    "Dataset",
    "EntityKind",
    "InMemorySnapshotStore",
    "Snapshot",
    "SnapshotStore",
    "ZfsSnapshotStore",
    "as_utc",
]
