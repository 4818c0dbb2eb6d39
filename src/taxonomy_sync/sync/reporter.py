"""Run report formatting functions.

- ``format_progress_line`` -- one operator-facing line per node result.
- ``format_run_report`` -- full post-run summary.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import NodeAction

if TYPE_CHECKING:
    from .models import NodeResult, RunReport


_PROGRESS_TEMPLATES: dict[NodeAction, str] = {
    NodeAction.ADOPT: " - adopt: {path}",
    NodeAction.REMOVE: " - remove: {path}",
    NodeAction.PRUNE: "Pruned vocabulary {path}",
    NodeAction.IMPORT: "Imported vocabulary {path}",
    NodeAction.EXPORT: "Exported vocabulary {path}",
}


def format_progress_line(result: NodeResult) -> str:
    """Format a single result the way it is printed while a run progresses.

    Failed results carry the error after the node handle.
    """
    line = _PROGRESS_TEMPLATES[result.action].format(path=result.context_path)
    if result.detail:
        line += f" ({result.detail})"
    if not result.success:
        line += f" FAILED: {result.error}"
    return line


def format_run_report(report: RunReport) -> str:
    """Format a complete run report as human-readable text.

    The failure section is only included when at least one node failed.

    Args:
        report: The completed run report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [report.summary()]

    if report.failed:
        lines.append("")
        lines.append("Failures:")
        for r in report.failed:
            lines.append(f"  {r.context_path}: {r.error}")

    return "\n".join(lines)


def report_to_json(report: RunReport) -> dict:
    """Convert a run report to a structured dict for JSON serialisation.

    Args:
        report: The run report.

    Returns:
        Dict with run info, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "context_path": r.context_path,
            "action": r.action.value,
            "success": r.success,
        }
        if r.detail:
            entry["detail"] = r.detail
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    data: dict = {
        "operation": report.operation,
        "target": report.target,
        "state": report.state.value,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "succeeded": len(report.succeeded),
            "failed": len(report.failed),
        },
        "results": results_list,
    }
    if report.aborted:
        data["error"] = {"kind": report.error_kind, "message": report.error}
    return data
