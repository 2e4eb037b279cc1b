"""Shared fixtures for snapkeep tests."""

from datetime import datetime, timedelta, timezone

import pytest

from snapkeep.store.base import Dataset, Snapshot
from snapkeep.store.memory import InMemorySnapshotStore

# Wednesday, mid-afternoon, so hour/day/week/month/year buckets all differ
NOW = datetime(2024, 5, 15, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed evaluation anchor."""
    return NOW


@pytest.fixture
def make_snapshot():
    """Factory for snapshots aged relative to NOW."""

    def _make(
        label: str,
        age: timedelta = timedelta(0),
        dataset: str = "tank/data",
        override: str | None = None,
        created: datetime | None = None,
    ) -> Snapshot:
        return Snapshot(
            name=f"{dataset}@{label}",
            dataset=dataset,
            created=created if created is not None else NOW - age,
            override=override,
            used_bytes=1024,
        )

    return _make


@pytest.fixture
def hourly_snapshots(make_snapshot):
    """Five snapshots one hour apart, S0 newest."""
    return [make_snapshot(f"S{i}", timedelta(hours=i)) for i in range(5)]


@pytest.fixture
def store(hourly_snapshots):
    """In-memory store with one managed and one unmanaged dataset."""
    return InMemorySnapshotStore(
        datasets=[
            Dataset(name="tank/data", policy="h2"),
            Dataset(name="tank/scratch", policy=None),
        ],
        snapshots=hourly_snapshots,
    )
