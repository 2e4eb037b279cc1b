"""
Snapshot retention for snapkeep.

Calendar-bucketed retention policies with a safety-gated garbage collector.

Usage:
    from snapkeep.retention import GarbageCollectionJob, parse_policy

    policy = parse_policy("h24d30w8m6y1")

    job = GarbageCollectionJob(store, dry_run=True)
    result = job.run()
    for dataset in result.datasets:
        print(dataset.dataset, dataset.to_delete)
"""

from snapkeep.retention.buckets import Bucket, bucket_index, compute_keep_set, select_representatives
from snapkeep.retention.decision import Verdict, evaluate
from snapkeep.retention.executor import DeletionResult, SnapshotExecutor
from snapkeep.retention.gc import DatasetGCResult, GarbageCollectionJob, GCRunResult
from snapkeep.retention.policy import KEEP_FOREVER, RetentionPolicy, TimeUnit, parse_policy

__all__ = [
    "Bucket",
    "DatasetGCResult",
    "DeletionResult",
    "GCRunResult",
    "GarbageCollectionJob",
    "KEEP_FOREVER",
    "RetentionPolicy",
    "SnapshotExecutor",
    "TimeUnit",
    "Verdict",
    "bucket_index",
    "compute_keep_set",
    "evaluate",
    "parse_policy",
    "select_representatives",
]
