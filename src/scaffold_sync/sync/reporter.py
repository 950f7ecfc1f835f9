"""Sync report formatting functions.

Provides human-readable and machine-readable output:

- ``format_merge_analysis`` -- the risk table shown before confirming.
- ``format_sync_report`` -- full post-sync summary.
- ``analysis_to_json`` / ``report_to_json`` -- structured dicts for
  ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import DeployAction, RestoreMethod, RiskTier

if TYPE_CHECKING:
    from .models import MergeAnalysis, SyncReport

_RISK_LABELS = {
    RiskTier.HIGH: "HIGH",
    RiskTier.MEDIUM: "MED",
    RiskTier.LOW: "LOW",
}

# ------------------------------------------------------------------
# Merge analysis
# ------------------------------------------------------------------


def format_merge_analysis(analysis: MergeAnalysis) -> str:
    """Format a merge analysis as an aligned table plus summary.

    Args:
        analysis: Result of ``analyzer.analyze``.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [analysis.summary or f"Found {analysis.total} files to sync"]
    if not analysis.files:
        lines.append("No user-visible files will change.")
        return "\n".join(lines)

    width = max(len(f.path) for f in analysis.files)
    lines.append("")
    for f in analysis.files:
        lines.append(
            f"  [{_RISK_LABELS[f.risk]:>4}] {f.path:<{width}}  "
            f"{f.change_type.value:<15}  {f.strategy.value}"
        )
    lines.append("")
    lines.append(
        f"Risk: {analysis.risk_level.value} "
        f"({analysis.high_risk_count} high, {analysis.medium_risk_count} medium, "
        f"{analysis.low_risk_count} low)"
    )
    if not analysis.safe_to_merge:
        lines.append("High-risk files will be merged; review them after the sync.")
    return "\n".join(lines)


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one entry.
    """
    lines: list[str] = [report.summary()]
    lines.append(
        f"Template version: {report.template_version}"
        + (f" (project: {report.project_version})" if report.project_version else "")
    )
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    if report.backup_dir:
        lines.append(f"Backup: {report.backup_dir}")
        lines.append("")

    merged = [d for d in report.deployed if d.action == DeployAction.MERGED]
    conflicts = [d for d in report.deployed if d.action == DeployAction.CONFLICT]
    preserved = [d for d in report.deployed if d.action == DeployAction.PRESERVED]

    if merged:
        lines.append("Merged:")
        for d in merged:
            lines.append(f"  {d.path} ({d.strategy.value if d.strategy else 'merge'})")
        lines.append("")

    if conflicts:
        lines.append("Conflicts (user content kept):")
        for d in conflicts:
            lines.append(f"  {d.path}: {d.note or 'both sides changed'}")
        lines.append("")

    if preserved:
        lines.append("Preserved (could not merge):")
        for d in preserved:
            lines.append(f"  {d.path}: {d.note}")
        lines.append("")

    problems = [
        r
        for r in report.restored
        if r.method in (RestoreMethod.RAW_FALLBACK, RestoreMethod.FAILED)
    ]
    if problems:
        lines.append("Restore warnings:")
        for r in problems:
            lines.append(f"  {r.path} [{r.method.value}]: {r.warning}")
        lines.append("")

    if report.degraded:
        lines.append("Degraded steps:")
        for o in report.degraded:
            lines.append(f"  {o.phase.value}: {o.message}")
        lines.append("")

    if report.deleted_backups:
        lines.append(f"Rotated: {report.deleted_backups} old backups deleted")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def analysis_to_json(analysis: MergeAnalysis) -> dict:
    return {
        "summary": analysis.summary,
        "risk_level": analysis.risk_level.value,
        "safe_to_merge": analysis.safe_to_merge,
        "has_conflicts": analysis.has_conflicts,
        "counts": {
            "total": analysis.total,
            "high": analysis.high_risk_count,
            "medium": analysis.medium_risk_count,
            "low": analysis.low_risk_count,
        },
        "files": [f.model_dump(mode="json") for f in analysis.files],
    }


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation."""
    return {
        "project_root": report.project_root,
        "template_version": report.template_version,
        "project_version": report.project_version,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "final_phase": report.final_phase.value,
        "halted_at": report.halted_at.value if report.halted_at else None,
        "succeeded": report.succeeded,
        "cancelled": report.cancelled,
        "up_to_date": report.up_to_date,
        "summary": report.summary(),
        "backup_dir": report.backup_dir,
        "deleted_backups": report.deleted_backups,
        "outcomes": [o.model_dump(mode="json") for o in report.outcomes],
        "deployed": [d.model_dump(mode="json") for d in report.deployed],
        "restored": [r.model_dump(mode="json") for r in report.restored],
        "analysis": analysis_to_json(report.analysis) if report.analysis else None,
    }
