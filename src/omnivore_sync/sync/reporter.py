"""Sync report formatting functions.

- ``format_sync_report`` -- human-readable post-sync summary.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from .models import EntityKind, SyncAction

if TYPE_CHECKING:
    from .models import SyncReport, SyncResult


_PAST = {
    SyncAction.CREATE: "created",
    SyncAction.UPDATE: "updated",
    SyncAction.SKIP: "skipped",
}


def _counts(results: list[SyncResult]) -> dict[str, int]:
    counts: dict[str, int] = defaultdict(int)
    for r in results:
        if r.success:
            counts[f"{r.kind.value}s_{_PAST[r.action]}"] += 1
    return counts


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a sync report as human-readable text.

    Sections are only included when they contain at least one result.
    Updated and skipped entities are summarised by count only.

    Args:
        report: The finished sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    lines.append(
        f"Sync report for graph '{report.graph}': {report.status.value}"
    )
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    if report.watermark_before is not None:
        lines.append(
            f"Watermark: {report.watermark_before or '(none)'}"
            f" -> {report.watermark_after or '(none)'}"
        )
    lines.append("")

    if report.error:
        lines.append(f"Error: {report.error}")
        lines.append("")

    if not report.results and not report.pages:
        return "\n".join(lines).rstrip()

    created = report.created
    lines.append(
        f"Processed {report.pages} pages: "
        f"{len(created)} created, {len(report.updated)} updated, "
        f"{len(report.errors)} errors"
    )
    lines.append("")

    new_articles = [r for r in created if r.kind == EntityKind.ARTICLE]
    if new_articles:
        lines.append("New articles:")
        for r in new_articles:
            lines.append(f"  {r.article_slug}")
        lines.append("")

    new_slugs = {r.article_slug for r in new_articles}
    new_highlights = [
        r
        for r in created
        if r.kind == EntityKind.HIGHLIGHT and r.article_slug not in new_slugs
    ]
    if new_highlights:
        lines.append("New highlights in existing articles:")
        for r in new_highlights:
            lines.append(f"  {r.article_slug}#{r.key}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.article_slug}: {r.error}")
        lines.append("")

    skipped = len(report.skipped)
    if skipped > 0:
        lines.append(f"Unchanged notes: {skipped}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "kind": r.kind.value,
            "key": r.key,
            "article": r.article_slug,
            "action": r.action.value,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    counts = {
        "total": len(report.results),
        "created": len(report.created),
        "updated": len(report.updated),
        "skipped": len(report.skipped),
        "errors": len(report.errors),
    }
    counts.update(_counts(report.results))

    return {
        "graph": report.graph,
        "status": report.status.value,
        "pages": report.pages,
        "watermark_before": report.watermark_before,
        "watermark_after": report.watermark_after,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "error": report.error,
        "counts": counts,
        "results": results_list,
    }

