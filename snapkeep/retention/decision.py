"""
Keep/delete decisions for the snapshots of one dataset.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from snapkeep.retention.buckets import Bucket, retained_by
from snapkeep.retention.policy import KEEP_FOREVER, RetentionPolicy
from snapkeep.store.base import Snapshot

OVERRIDE_REASON = "override"


def _oldest_first(snapshots: list[Snapshot]) -> list[Snapshot]:
    return sorted(snapshots, key=lambda s: (s.created, s.name))


def is_overridden(snapshot: Snapshot) -> bool:
    """True when the snapshot carries the keep-forever marker."""
    return snapshot.override == KEEP_FOREVER


@dataclass
class Verdict:
    """
    Outcome of evaluating one dataset's snapshots.

    Attributes:
        now: Anchor the evaluation used
        kept: Snapshots to keep, oldest first
        to_delete: Snapshots to delete, oldest first
        reasons: Snapshot name -> why it is kept (bucket labels or "override")
    """

    now: datetime
    kept: list[Snapshot] = field(default_factory=list)
    to_delete: list[Snapshot] = field(default_factory=list)
    reasons: dict[str, list[str]] = field(default_factory=dict)

    @property
    def keep_names(self) -> list[str]:
        return [s.name for s in self.kept]

    @property
    def delete_names(self) -> list[str]:
        return [s.name for s in self.to_delete]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "now": self.now.isoformat(),
            "kept": self.keep_names,
            "to_delete": self.delete_names,
            "reasons": self.reasons,
        }


def evaluate(
    now: datetime,
    snapshots: list[Snapshot],
    policy: RetentionPolicy,
) -> Verdict:
    """
    Decide which snapshots of a dataset to keep and which to delete.

    A snapshot is kept when some unit of the policy selects it as a bucket
    representative, or when its override is exactly ``-``.

    Args:
        now: Evaluation anchor, fixed for the whole dataset
        snapshots: All snapshots of the dataset
        policy: Parsed retention policy of the dataset

    Returns:
        Verdict with keep and delete lists ordered oldest first
    """
    buckets: dict[str, list[Bucket]] = retained_by(now, snapshots, policy)
    verdict = Verdict(now=now)

    for snapshot in _oldest_first(snapshots):
        reasons = [str(bucket) for bucket in buckets.get(snapshot.name, [])]
        if is_overridden(snapshot):
            reasons.append(OVERRIDE_REASON)

        if reasons:
            verdict.kept.append(snapshot)
            verdict.reasons[snapshot.name] = reasons
        else:
            verdict.to_delete.append(snapshot)

    return verdict
