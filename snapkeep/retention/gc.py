"""
Garbage collection of expired snapshots.

Evaluates every managed dataset against its retention policy and destroys the
snapshots no unit keeps. Includes a dry-run mode that only reports what would
be deleted.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from snapkeep.exceptions import InvalidPolicy, PropertyReadError, SnapkeepError
from snapkeep.retention.decision import Verdict, evaluate
from snapkeep.retention.executor import DeletionResult, SnapshotExecutor
from snapkeep.retention.policy import parse_policy
from snapkeep.store.base import Dataset, SnapshotStore, as_utc


@dataclass
class DatasetGCResult:
    """
    Result of collecting one dataset.

    Attributes:
        dataset: Dataset name
        policy: Raw policy string as read from the store
        dry_run: Whether deletions were skipped
        snapshot_count: Number of snapshots evaluated
        verdict: Keep/delete decision, None if evaluation failed
        deletion: Outcome of the deletions, None for dry runs and failures
        errors: Policy and read errors for this dataset
        duration_seconds: Time taken for this dataset
    """

    dataset: str
    policy: str | None
    dry_run: bool
    snapshot_count: int = 0
    verdict: Verdict | None = None
    deletion: DeletionResult | None = None
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def to_delete(self) -> list[str]:
        return self.verdict.delete_names if self.verdict else []

    @property
    def success(self) -> bool:
        """Check if the dataset was evaluated and every deletion succeeded."""
        if self.errors:
            return False
        return self.deletion is None or self.deletion.success

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "dataset": self.dataset,
            "policy": self.policy,
            "dry_run": self.dry_run,
            "snapshot_count": self.snapshot_count,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "deletion": self.deletion.to_dict() if self.deletion else None,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class GCRunResult:
    """Aggregate result of a garbage collection run over many datasets."""

    dry_run: bool
    datasets: list[DatasetGCResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return sum(r.deletion.deleted_count for r in self.datasets if r.deletion)

    @property
    def failure_count(self) -> int:
        return sum(len(r.deletion.failures) for r in self.datasets if r.deletion)

    @property
    def success(self) -> bool:
        """True when no dataset errored and no deletion failed."""
        return not self.errors and all(r.success for r in self.datasets)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "dry_run": self.dry_run,
            "success": self.success,
            "deleted_count": self.deleted_count,
            "failure_count": self.failure_count,
            "errors": self.errors,
            "datasets": [r.to_dict() for r in self.datasets],
        }


class GarbageCollectionJob:
    """
    Applies retention policies to every managed dataset of a store.

    Datasets are independent and may be processed in parallel; deletions
    within one dataset always run sequentially.
    """

    def __init__(
        self,
        store: SnapshotStore,
        dry_run: bool = False,
        max_workers: int = 1,
    ):
        """
        Initialize the garbage collection job.

        Args:
            store: Snapshot backend to read from and delete through
            dry_run: If True, only report what would be deleted
            max_workers: Number of datasets to process concurrently
        """
        self._store = store
        self._dry_run = dry_run
        self._max_workers = max(1, max_workers)
        self._executor = SnapshotExecutor(store)

    def run(
        self,
        now: datetime | None = None,
        dataset_names: list[str] | None = None,
    ) -> GCRunResult:
        """
        Run garbage collection.

        Args:
            now: Fixed evaluation anchor; when None each dataset uses the
                current time at the start of its evaluation
            dataset_names: Restrict the run to these datasets (defaults to all)

        Returns:
            GCRunResult with one entry per managed dataset
        """
        result = GCRunResult(dry_run=self._dry_run)

        try:
            datasets = self._resolve_datasets(dataset_names, result)
        except PropertyReadError as e:
            logger.error(f"Could not list datasets: {e}")
            result.errors.append(str(e))
            return result

        managed = [d for d in datasets if d.managed]
        for dataset in datasets:
            if not dataset.managed:
                logger.debug(f"Skipping unmanaged dataset {dataset.name}")

        logger.info(
            f"Running garbage collection (dry_run={self._dry_run}) for {len(managed)} datasets"
        )

        if self._max_workers == 1 or len(managed) <= 1:
            result.datasets = [self.collect(d, now) for d in managed]
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                result.datasets = list(pool.map(lambda d: self.collect(d, now), managed))

        logger.info(
            f"Garbage collection finished: deleted={result.deleted_count}, "
            f"failures={result.failure_count}, "
            f"dataset_errors={sum(1 for r in result.datasets if r.errors)}"
        )
        return result

    def _resolve_datasets(self, dataset_names: list[str] | None, result: GCRunResult) -> list[Dataset]:
        if dataset_names is None:
            return self._store.list_datasets()

        # Named datasets are read one by one; an unreadable one fails alone.
        datasets = []
        for name in dataset_names:
            try:
                datasets.append(Dataset(name=name, policy=self._store.get_policy(name)))
            except PropertyReadError as e:
                logger.error(f"Could not read policy of {name}: {e}")
                result.errors.append(str(e))
        return datasets

    def collect(self, dataset: Dataset, now: datetime | None = None) -> DatasetGCResult:
        """
        Evaluate one dataset and delete its expired snapshots.

        Errors are recorded on the result rather than raised, so one dataset
        never stops the others.

        Args:
            dataset: Managed dataset to collect
            now: Evaluation anchor (defaults to the current time)

        Returns:
            DatasetGCResult for the dataset
        """
        start_time = time.time()
        result = DatasetGCResult(dataset=dataset.name, policy=dataset.policy, dry_run=self._dry_run)

        try:
            self._collect(dataset, as_utc(now) if now else datetime.now(timezone.utc), result)
        except InvalidPolicy as e:
            logger.warning(f"Skipping {dataset.name}: {e}")
            result.errors.append(str(e))
        except SnapkeepError as e:
            logger.error(f"Error collecting {dataset.name}: {e}")
            result.errors.append(str(e))
        except Exception as e:
            logger.exception(f"Unexpected error collecting {dataset.name}")
            result.errors.append(f"{type(e).__name__}: {e}")

        result.duration_seconds = time.time() - start_time
        return result

    def _collect(self, dataset: Dataset, now: datetime, result: DatasetGCResult) -> None:
        policy = parse_policy(dataset.policy)
        snapshots = self._store.list_snapshots(dataset.name)
        result.snapshot_count = len(snapshots)

        verdict = evaluate(now, snapshots, policy)
        result.verdict = verdict

        if not verdict.to_delete:
            logger.info(f"{dataset.name}: nothing to delete ({len(verdict.kept)} kept)")
            return

        if self._dry_run:
            for snapshot in verdict.to_delete:
                logger.info(f"Would delete {snapshot.name}")
            return

        logger.warning(
            f"About to delete {len(verdict.to_delete)} snapshots of {dataset.name} (policy {policy})"
        )
        result.deletion = self._executor.delete_all(verdict.to_delete)
        logger.info(
            f"{dataset.name}: deleted={result.deletion.deleted_count}, "
            f"failures={len(result.deletion.failures)}"
        )
