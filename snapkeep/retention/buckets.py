"""
Calendar bucketing of snapshots.

Each retention unit splits time into calendar-aligned UTC buckets. A bucket's
index is its distance from the bucket containing ``now``: 0 is the current
bucket, 1 the one before it, and snapshots from the future get negative
indices. Only timestamps matter; snapshot names are used solely to break ties.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from snapkeep.retention.policy import RetentionPolicy, TimeUnit
from snapkeep.store.base import Snapshot, as_utc

_EPOCH_MONDAY = datetime(1970, 1, 5).date()


@dataclass(frozen=True)
class Bucket:
    """A single (unit, index) time bucket."""

    unit: TimeUnit
    index: int

    def __str__(self) -> str:
        return f"{self.unit.label}[{self.index}]"


def _ordinal(unit: TimeUnit, moment: datetime) -> int:
    """Absolute bucket number of a UTC instant for one unit."""
    if unit is TimeUnit.HOUR:
        return moment.toordinal() * 24 + moment.hour
    if unit is TimeUnit.DAY:
        return moment.toordinal()
    if unit is TimeUnit.WEEK:
        # ISO weeks start on Monday
        return (moment.date() - _EPOCH_MONDAY).days // 7
    if unit is TimeUnit.MONTH:
        return moment.year * 12 + (moment.month - 1)
    return moment.year


def bucket_index(unit: TimeUnit, timestamp: datetime, now: datetime) -> int:
    """
    Index of the bucket holding ``timestamp`` relative to the one holding ``now``.

    Args:
        unit: Bucket granularity
        timestamp: Snapshot creation instant
        now: Evaluation anchor

    Returns:
        0 for the current bucket, positive for older buckets, negative for
        buckets in the future
    """
    return _ordinal(unit, as_utc(now)) - _ordinal(unit, as_utc(timestamp))


def _representative(members: list[Snapshot]) -> Snapshot:
    """Latest snapshot of a bucket; equal timestamps go to the smallest name."""
    # max() keeps the first of equal maxima, so sort by name first
    return max(sorted(members, key=lambda s: s.name), key=lambda s: s.created)


def select_representatives(
    now: datetime,
    snapshots: Iterable[Snapshot],
    unit: TimeUnit,
    count: int,
) -> list[tuple[Bucket, Snapshot]]:
    """
    Pick the snapshots one unit keeps.

    Snapshots are grouped into buckets, one representative is chosen per
    occupied bucket, and up to ``count`` representatives are taken from the
    most recent bucket backwards.

    Args:
        now: Evaluation anchor, shared by all units of one evaluation
        snapshots: Snapshots of a single dataset
        unit: Bucket granularity
        count: Maximum number of buckets to keep

    Returns:
        (bucket, representative) pairs, most recent first
    """
    if count <= 0:
        return []

    groups: dict[int, list[Snapshot]] = defaultdict(list)
    for snapshot in snapshots:
        groups[bucket_index(unit, snapshot.created, now)].append(snapshot)

    return [
        (Bucket(unit, index), _representative(groups[index]))
        for index in sorted(groups)[:count]
    ]


def retained_by(
    now: datetime,
    snapshots: Iterable[Snapshot],
    policy: RetentionPolicy,
) -> dict[str, list[Bucket]]:
    """
    Map each retained snapshot name to the buckets that keep it.

    Args:
        now: Evaluation anchor
        snapshots: Snapshots of a single dataset
        policy: Parsed retention policy

    Returns:
        Snapshot name -> buckets it represents, finest unit first
    """
    snapshots = list(snapshots)
    reasons: dict[str, list[Bucket]] = defaultdict(list)
    for unit in policy.active_units():
        for bucket, snapshot in select_representatives(now, snapshots, unit, policy.count(unit)):
            reasons[snapshot.name].append(bucket)
    return dict(reasons)


def compute_keep_set(
    now: datetime,
    snapshots: Iterable[Snapshot],
    policy: RetentionPolicy,
) -> set[str]:
    """
    Names of all snapshots kept by any unit of the policy.

    Args:
        now: Evaluation anchor
        snapshots: Snapshots of a single dataset
        policy: Parsed retention policy

    Returns:
        Union of representatives across all units
    """
    return set(retained_by(now, snapshots, policy))
