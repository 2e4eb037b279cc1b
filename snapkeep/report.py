"""
Plain-text formatting of garbage collection results.

Used by ``snapkeep status`` and ``snapkeep gc`` to print what is configured,
what would be removed, and what happened.
"""

from __future__ import annotations

from snapkeep.retention.gc import DatasetGCResult, GCRunResult

LINE_WIDTH = 80

_IEC_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")


def format_bytes(size: int | None) -> str:
    """
    Render a byte count in IEC units, e.g. ``13.0 GiB``.

    Args:
        size: Number of bytes, or None when unknown

    Returns:
        Human readable size, ``-`` when unknown
    """
    if size is None:
        return "-"

    value = float(size)
    for unit in _IEC_UNITS:
        if value < 1024 or unit == _IEC_UNITS[-1]:
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _wrap_names(prefix: str, names: list[str]) -> list[str]:
    """Lay out names after a prefix, wrapping at LINE_WIDTH."""
    lines = []
    current = prefix
    for name in names:
        if current != prefix and len(current) + 1 + len(name) > LINE_WIDTH:
            lines.append(current)
            current = f"    {name}"
        else:
            current = f"{current} {name}"
    lines.append(current)
    return lines


def _configured_section(results: list[DatasetGCResult]) -> list[str]:
    lines = ["Configured datasets"]
    width = max(len(r.dataset) for r in results)
    for r in results:
        if r.errors:
            detail = f"ERROR: {'; '.join(r.errors)}"
        else:
            detail = f"{r.policy} ({r.snapshot_count} snapshots)"
        lines.append(f"  {r.dataset:<{width}}  {detail}")
    return lines


def _removal_section(results: list[DatasetGCResult]) -> list[str]:
    lines = ["Snapshots to be removed"]
    any_removed = False
    for r in results:
        if not r.to_delete:
            continue
        any_removed = True
        lines.extend(_wrap_names(f"  {r.dataset}:", r.to_delete))
    if not any_removed:
        lines.append("  (none)")
    return lines


def _removal_section_verbose(results: list[DatasetGCResult]) -> list[str]:
    lines = ["Snapshots to be removed"]
    any_removed = False
    for r in results:
        if r.verdict is None or not r.verdict.to_delete:
            continue
        any_removed = True
        rows = [
            (s.name, s.created.strftime("%Y-%m-%dT%H:%M:%SZ"), format_bytes(s.used_bytes))
            for s in r.verdict.to_delete
        ]
        widths = [max(len(h), *(len(row[i]) for row in rows)) for i, h in enumerate(("Name", "Created", "Used"))]
        lines.append(f"  {r.dataset}")
        lines.append(
            f"    {'Name':<{widths[0]}} | {'Created':<{widths[1]}} | {'Used':<{widths[2]}}"
        )
        for name, created, used in rows:
            lines.append(f"    {name:<{widths[0]}} | {created:<{widths[1]}} | {used:<{widths[2]}}")
    if not any_removed:
        lines.append("  (none)")
    return lines


def _kept_section(results: list[DatasetGCResult]) -> list[str]:
    lines = ["Snapshots kept"]
    for r in results:
        if r.verdict is None or not r.verdict.kept:
            continue
        lines.append(f"  {r.dataset}")
        for s in r.verdict.kept:
            reasons = ", ".join(r.verdict.reasons.get(s.name, []))
            lines.append(f"    {s.name}  ({reasons})")
    return lines


def format_status(results: list[DatasetGCResult], verbose: bool = False) -> str:
    """
    Render the status report for evaluated datasets.

    Args:
        results: Dry-run results, one per managed dataset
        verbose: Include tables and the reasons snapshots are kept

    Returns:
        Multi-line report
    """
    if not results:
        return "No datasets configured for snapshot retention by this tool"

    lines = _configured_section(results)
    lines.append("")
    if verbose:
        lines.extend(_removal_section_verbose(results))
        lines.append("")
        lines.extend(_kept_section(results))
    else:
        lines.extend(_removal_section(results))
    return "\n".join(lines)


def format_run_summary(result: GCRunResult) -> str:
    """One block summarising a gc run, including every failure."""
    verb = "Would delete" if result.dry_run else "Deleted"
    if result.dry_run:
        count = sum(len(r.to_delete) for r in result.datasets)
    else:
        count = result.deleted_count

    lines = [f"{verb} {count} snapshots across {len(result.datasets)} datasets"]
    for error in result.errors:
        lines.append(f"  error: {error}")
    for r in result.datasets:
        for error in r.errors:
            lines.append(f"  {r.dataset}: {error}")
        if r.deletion:
            for name, error in r.deletion.failures:
                lines.append(f"  {r.dataset}: {name}: {error}")
    return "\n".join(lines)
