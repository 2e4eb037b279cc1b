"""
Retention policy parsing for snapkeep.

A policy is a compact string such as ``h24d30w8m6y1``: each token is a unit
letter followed by the number of buckets of that unit to keep.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from snapkeep.exceptions import InvalidPolicy

# Override marker on a snapshot; never a valid dataset policy.
KEEP_FOREVER = "-"

_TOKEN = re.compile(r"([a-zA-Z])([0-9]*)")


class TimeUnit(Enum):
    """Bucket granularities, ordered finest first."""

    HOUR = "h"
    DAY = "d"
    WEEK = "w"
    MONTH = "m"
    YEAR = "y"

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Number of buckets to keep for each time unit.

    A unit with count 0 takes no part in bucket selection.
    """

    hour: int = 0
    day: int = 0
    week: int = 0
    month: int = 0
    year: int = 0

    def __post_init__(self) -> None:
        for unit in TimeUnit:
            if self.count(unit) < 0:
                raise InvalidPolicy(None, f"negative count for unit '{unit.value}'")

    def count(self, unit: TimeUnit) -> int:
        """Retention count for a unit."""
        return getattr(self, unit.label)

    def counts(self) -> dict[TimeUnit, int]:
        """All five units with their counts, finest first."""
        return {unit: self.count(unit) for unit in TimeUnit}

    def active_units(self) -> list[TimeUnit]:
        """Units that contribute to the keep set."""
        return [unit for unit, count in self.counts().items() if count > 0]

    def describe(self) -> str:
        """Human readable description, e.g. for ``snapkeep check-policy``."""
        parts = [
            f"{count} {unit.label}{'s' if count != 1 else ''}"
            for unit, count in self.counts().items()
            if count > 0
        ]
        if not parts:
            return "keep nothing (only overridden snapshots survive)"
        return "keep the newest snapshot in each of the last " + ", ".join(parts)

    def __str__(self) -> str:
        return "".join(f"{unit.value}{count}" for unit, count in self.counts().items() if count > 0)


def parse_policy(spec: str | None) -> RetentionPolicy:
    """
    Parse a compact policy string into a RetentionPolicy.

    Args:
        spec: Policy string such as ``h24d30w8m6y1``

    Returns:
        RetentionPolicy with all five units set (missing units are 0)

    Raises:
        InvalidPolicy: If the string is empty, is the ``-`` override marker,
            names an unknown or duplicate unit, has a missing count, or
            carries trailing characters
    """
    if spec is None:
        raise InvalidPolicy(spec, "no policy given")

    text = spec.strip()
    if not text:
        raise InvalidPolicy(spec, "policy is empty")
    if text == KEEP_FOREVER:
        raise InvalidPolicy(spec, "'-' is a per-snapshot override, not a dataset policy")

    units = {unit.value: unit for unit in TimeUnit}
    counts: dict[TimeUnit, int] = {}
    pos = 0

    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if match is None:
            raise InvalidPolicy(spec, f"unexpected {text[pos:]!r} at position {pos}")

        letter, digits = match.groups()
        unit = units.get(letter)
        if unit is None:
            raise InvalidPolicy(
                spec, f"unknown unit '{letter}' (valid units: {'|'.join(units)})"
            )
        if unit in counts:
            raise InvalidPolicy(spec, f"unit '{letter}' given more than once")
        if not digits:
            raise InvalidPolicy(spec, f"unit '{letter}' is missing a non-negative count")

        counts[unit] = int(digits)
        pos = match.end()

    return RetentionPolicy(**{unit.label: count for unit, count in counts.items()})
