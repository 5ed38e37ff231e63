"""Sync report formatting functions.

- ``format_sync_report`` -- human-readable post-pass summary.
- ``report_to_json`` -- structured dict for ``--json`` and MCP output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import SyncMode

if TYPE_CHECKING:
    from .models import SyncReport

DEFAULT_ERROR_LIMIT = 5

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(
    report: SyncReport, error_limit: int = DEFAULT_ERROR_LIMIT
) -> str:
    """Format a pass report as human-readable text.

    Sections are only included when non-empty.  Skipped documents are
    counted, not listed, and at most *error_limit* errors are shown.

    Args:
        report: The completed report.
        error_limit: Maximum number of error lines.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    title = "Full resync" if report.mode is SyncMode.FULL else "Sync"
    lines.append(f"{title} report ({report.status.value})")
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    if report.is_fatal:
        lines.append(f"Pass aborted: {report.reason}")
        for warning in report.warnings:
            lines.append(f"  warning: {warning}")
        return "\n".join(lines).rstrip()

    lines.append(
        f"Processed {len(report.results)} documents: "
        f"{len(report.created)} created, {len(report.updated)} updated, "
        f"{len(report.skipped)} skipped, {len(report.failed)} failed"
    )
    if report.mode is SyncMode.FULL:
        lines.append(f"Archived {report.archived} existing pages and blocks")
    lines.append("")

    if report.created:
        lines.append("Created:")
        for r in report.created:
            lines.append(f"  {r.local_path}")
        lines.append("")

    if report.updated:
        lines.append("Updated:")
        for r in report.updated:
            lines.append(f"  {r.local_path}")
        lines.append("")

    if report.failed:
        lines.append("Errors:")
        for message in report.error_messages(error_limit):
            lines.append(f"  {message}")
        hidden = len(report.failed) - error_limit
        if hidden > 0:
            lines.append(f"  ... and {hidden} more")
        lines.append("")

    if report.warnings:
        lines.append("Warnings:")
        for warning in report.warnings:
            lines.append(f"  {warning}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(
    report: SyncReport, error_limit: int = DEFAULT_ERROR_LIMIT
) -> dict:
    """Convert a report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.
    """
    results_list = []
    for r in report.results:
        entry: dict = {"local_path": r.local_path, "outcome": r.outcome.value}
        if r.node_id:
            entry["node_id"] = r.node_id
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "mode": report.mode.value,
        "status": report.status.value,
        "reason": report.reason,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "created": len(report.created),
            "updated": len(report.updated),
            "skipped": len(report.skipped),
            "failed": len(report.failed),
            "archived": report.archived,
        },
        "errors": report.error_messages(error_limit),
        "warnings": list(report.warnings),
        "results": results_list,
    }
