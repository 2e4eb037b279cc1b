"""
Snapshot store backed by the ``zfs`` command line tool.

All reads use scripted mode (``-H``, tab separated, no header) and parsable
numbers (``-p``) so creation times come back as epoch seconds.
"""

from __future__ import annotations

import os
import subprocess
from collections import defaultdict
from datetime import datetime, timezone

from loguru import logger

from snapkeep.exceptions import DeleteFailure, PropertyReadError
from snapkeep.store.base import Dataset, EntityKind, Snapshot, SnapshotStore

DEFAULT_PROPERTY = "at.rollc.at:snapkeep"

# ``zfs get`` reports source "-" for properties that are not set anywhere.
_UNSET_SOURCE = "-"

# zfs messages stay untranslated; entity_kind matches on English stderr.
_LOCALE_OVERRIDE = {"LC_ALL": "C"}

# Creation format printed by zfs when -p is not honoured, e.g. "Sat Oct  2 09:59 2021"
_CREATION_FORMAT = "%a %b %d %H:%M %Y"


def parse_creation(value: str) -> datetime:
    """
    Parse a ZFS creation value into an aware UTC datetime.

    Args:
        value: Epoch seconds (``-p`` output) or the human readable form

    Returns:
        Creation instant in UTC

    Raises:
        ValueError: If the value matches neither form
    """
    value = value.strip()
    if value.isdigit():
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    try:
        return datetime.strptime(" ".join(value.split()), _CREATION_FORMAT).replace(
            tzinfo=timezone.utc
        )
    except ValueError as e:
        raise ValueError(f"can't parse creation time: {value!r}") from e


def _parse_used(value: str) -> int | None:
    return int(value) if value.strip().isdigit() else None


class ZfsSnapshotStore(SnapshotStore):
    """
    SnapshotStore that shells out to ``zfs``.

    Args:
        property_name: User property holding policies and overrides
        zfs_binary: Path or name of the zfs executable
        timeout: Seconds to wait for each zfs invocation
    """

    def __init__(
        self,
        property_name: str = DEFAULT_PROPERTY,
        zfs_binary: str = "zfs",
        timeout: float = 60.0,
    ):
        self.property_name = property_name
        self.zfs_binary = zfs_binary
        self.timeout = timeout

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        cmd = [self.zfs_binary, *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=self.timeout,
            check=False,
            env={**os.environ, **_LOCALE_OVERRIDE},
        )

    def _read(self, target: str, args: list[str]) -> list[list[str]]:
        """Run a read-only zfs command and split its output into rows of fields."""
        try:
            proc = self._run(args)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise PropertyReadError(target, str(e)) from e

        if proc.returncode != 0:
            raise PropertyReadError(target, proc.stderr.strip() or f"zfs exited with {proc.returncode}")

        return [line.split("\t") for line in proc.stdout.splitlines() if line.strip()]

    def list_datasets(self) -> list[Dataset]:
        rows = self._read(
            "datasets",
            [
                "get", "-H", "-p", "-t", "filesystem,volume",
                "-o", "name,property,value,source",
                f"type,{self.property_name}",
            ],
        )

        fields: dict[str, dict[str, tuple[str, str]]] = defaultdict(dict)
        for row in rows:
            if len(row) != 4:
                raise PropertyReadError("datasets", f"unexpected row: {row!r}")
            name, prop, value, source = row
            fields[name][prop] = (value, source)

        datasets = []
        for name, props in fields.items():
            kind = EntityKind.from_zfs(props.get("type", ("", ""))[0])
            if kind not in (EntityKind.FILESYSTEM, EntityKind.VOLUME):
                raise PropertyReadError(name, f"expected filesystem or volume, got {kind}")
            value, source = props.get(self.property_name, ("-", _UNSET_SOURCE))
            policy = None if source == _UNSET_SOURCE else value
            datasets.append(Dataset(name=name, policy=policy, kind=kind))
        return datasets

    def get_policy(self, dataset: str) -> str | None:
        rows = self._read(
            dataset, ["get", "-H", "-p", "-o", "value,source", self.property_name, dataset]
        )
        if len(rows) != 1 or len(rows[0]) != 2:
            raise PropertyReadError(dataset, f"unexpected output: {rows!r}")
        value, source = rows[0]
        return None if source == _UNSET_SOURCE else value

    def list_snapshots(self, dataset: str) -> list[Snapshot]:
        rows = self._read(
            dataset,
            [
                "get", "-H", "-p", "-r", "-d", "1", "-t", "snapshot",
                "-o", "name,property,value,source",
                f"creation,used,{self.property_name}",
                dataset,
            ],
        )

        fields: dict[str, dict[str, tuple[str, str]]] = defaultdict(dict)
        for row in rows:
            if len(row) != 4:
                raise PropertyReadError(dataset, f"unexpected row: {row!r}")
            name, prop, value, source = row
            fields[name][prop] = (value, source)

        snapshots = []
        for name, props in fields.items():
            owner = name.split("@", 1)[0]
            if owner != dataset:
                continue
            if "creation" not in props:
                raise PropertyReadError(name, "missing creation property")
            try:
                created = parse_creation(props["creation"][0])
            except ValueError as e:
                raise PropertyReadError(name, str(e)) from e

            override = None
            if self.property_name in props:
                value, source = props[self.property_name]
                # Local, received and inherited values all count; only "-"
                # pins a snapshot and a dataset policy can never be "-".
                if source != _UNSET_SOURCE:
                    override = value

            snapshots.append(
                Snapshot(
                    name=name,
                    dataset=dataset,
                    created=created,
                    override=override,
                    used_bytes=_parse_used(props.get("used", ("", ""))[0]),
                )
            )
        return snapshots

    def entity_kind(self, name: str) -> EntityKind | None:
        try:
            proc = self._run(["get", "-H", "-o", "value", "type", name])
        except (OSError, subprocess.TimeoutExpired) as e:
            raise PropertyReadError(name, str(e)) from e

        if proc.returncode != 0:
            # zfs get exits non-zero for names that do not exist; _run pins
            # LC_ALL=C so this message is never localized
            if "does not exist" in proc.stderr:
                return None
            raise PropertyReadError(name, proc.stderr.strip() or f"zfs exited with {proc.returncode}")
        return EntityKind.from_zfs(proc.stdout)

    def destroy_snapshot(self, snapshot: Snapshot) -> None:
        try:
            proc = self._run(["destroy", snapshot.name])
        except (OSError, subprocess.TimeoutExpired) as e:
            raise DeleteFailure(snapshot.name, str(e)) from e

        if proc.returncode != 0:
            raise DeleteFailure(snapshot.name, proc.stderr.strip() or f"zfs exited with {proc.returncode}")
