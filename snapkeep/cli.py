"""
Command line interface for snapkeep.

Usage:
    snapkeep gc                      # delete expired snapshots of every managed dataset
    snapkeep gc --dry-run            # only list what would be deleted
    snapkeep gc --dataset tank/home  # restrict to one dataset
    snapkeep status --verbose        # show policies, removals and why snapshots are kept
    snapkeep check-policy h24d30w8m6y1

Tips:
    zfs set at.rollc.at:snapkeep=h24d30w8m6y1 some/dataset     # enable retention
    zfs set at.rollc.at:snapkeep=- some/dataset@some-snap      # keep a snapshot forever
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime

from loguru import logger

from snapkeep import __version__
from snapkeep.exceptions import InvalidPolicy
from snapkeep.report import format_run_summary, format_status
from snapkeep.retention.gc import GarbageCollectionJob
from snapkeep.retention.policy import parse_policy
from snapkeep.store.base import SnapshotStore
from snapkeep.store.zfs import ZfsSnapshotStore
from snapkeep.utils.config import SnapkeepConfig, get_config
from snapkeep.utils.startup import fail_fast_startup


def _parse_now(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO 8601 timestamp: {value!r}") from e


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog="snapkeep",
        description="Calendar-bucketed retention and garbage collection for ZFS snapshots",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--property",
        dest="property_name",
        help="ZFS user property holding policies (default: $SNAPKEEP_PROPERTY or at.rollc.at:snapkeep)",
    )
    parser.add_argument(
        "--zfs",
        dest="zfs_binary",
        help="zfs executable (default: $SNAPKEEP_ZFS_BIN or zfs)",
    )
    parser.add_argument(
        "--workers",
        dest="max_workers",
        type=int,
        help="Datasets to process concurrently (default: $SNAPKEEP_MAX_WORKERS or 4)",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress log output except errors",
    )
    parser.add_argument(
        "--verbose-log",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    gc = subparsers.add_parser("gc", help="Delete snapshots no retention unit keeps")
    gc.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report what would be deleted",
    )
    gc.add_argument(
        "--dataset",
        action="append",
        dest="datasets",
        metavar="NAME",
        help="Restrict to this dataset (repeatable)",
    )
    gc.add_argument(
        "--now",
        type=_parse_now,
        help="Evaluate as of this ISO 8601 instant instead of the current time",
    )

    status = subparsers.add_parser("status", help="Show policies and pending removals")
    status.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show snapshot tables and why snapshots are kept",
    )
    status.add_argument(
        "--now",
        type=_parse_now,
        help="Evaluate as of this ISO 8601 instant instead of the current time",
    )

    check = subparsers.add_parser("check-policy", help="Validate a policy string")
    check.add_argument("spec", help="Policy string, e.g. h24d30w8m6y1")

    return parser


def _configure_logging(args: argparse.Namespace, config: SnapkeepConfig) -> None:
    logger.remove()
    if args.quiet:
        level = "ERROR"
    elif args.verbose_log:
        level = "DEBUG"
    else:
        level = config.log_level
    logger.add(sys.stderr, level=level)


def _make_store(config: SnapkeepConfig) -> SnapshotStore:
    fail_fast_startup(config)
    return ZfsSnapshotStore(
        property_name=config.property_name,
        zfs_binary=config.zfs_binary,
        timeout=config.command_timeout,
    )


def _check_policy(spec: str) -> int:
    try:
        policy = parse_policy(spec)
    except InvalidPolicy as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"{policy}: {policy.describe()}")
    return 0


def main(argv: list[str] | None = None, store: SnapshotStore | None = None) -> int:
    """
    Main entry point.

    Args:
        argv: Arguments (defaults to sys.argv[1:])
        store: Snapshot store to use instead of the zfs command line tool

    Returns:
        Process exit status: 0 on success, 1 if any error occurred
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = get_config().with_overrides(
            property_name=args.property_name,
            zfs_binary=args.zfs_binary,
            max_workers=args.max_workers,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _configure_logging(args, config)

    if args.command == "check-policy":
        return _check_policy(args.spec)

    try:
        store = store or _make_store(config)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.command == "status":
        job = GarbageCollectionJob(store, dry_run=True, max_workers=config.max_workers)
        result = job.run(now=args.now)
        if result.errors:
            print(format_run_summary(result), file=sys.stderr)
        print(format_status(result.datasets, verbose=args.verbose))
        return 0 if result.success else 1

    job = GarbageCollectionJob(store, dry_run=args.dry_run, max_workers=config.max_workers)
    result = job.run(now=args.now, dataset_names=args.datasets)
    if args.dry_run:
        print(format_status(result.datasets))
    print(format_run_summary(result))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
