"""Read-only merge analysis shown before a sync changes anything.

For each template entry the analyzer works out the rendered target path,
drops engine-managed targets (they are replaced wholesale, so there is
nothing to confirm), checks whether the target exists, and classifies it.
The per-file results are folded into a ``MergeAnalysis``.

Risk reporting is advisory: a stat failure never aborts the analysis.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from .layout import ManagedPathSet, display_path
from .models import FileAnalysis, MergeAnalysis, RiskTier
from .risk import classify, determine_change_type

logger = logging.getLogger(__name__)


def _target_exists(target: Path) -> bool:
    try:
        os.stat(target)
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.debug("Could not stat %s, treating as new: %s", target, exc)
        return False
    return True


def analyze_files(
    template_paths: Iterable[str],
    project_root: Path,
    managed: ManagedPathSet,
) -> list[FileAnalysis]:
    """Examine each template path and return one ``FileAnalysis`` per target."""
    files: list[FileAnalysis] = []
    for template_path in template_paths:
        shown = display_path(template_path)
        if managed.is_managed(shown):
            continue

        exists = _target_exists(project_root.joinpath(*shown.split("/")))
        risk, strategy = classify(shown, exists)
        files.append(
            FileAnalysis(
                path=shown,
                existed_before=exists,
                risk=risk,
                strategy=strategy,
                change_type=determine_change_type(exists),
            )
        )
    return files


def build_merge_analysis(files: list[FileAnalysis]) -> MergeAnalysis:
    """Fold per-file results into counts, overall risk and a summary."""
    high = sum(1 for f in files if f.risk == RiskTier.HIGH)
    medium = sum(1 for f in files if f.risk == RiskTier.MEDIUM)
    low = sum(1 for f in files if f.risk == RiskTier.LOW)

    if high:
        overall = RiskTier.HIGH
    elif medium:
        overall = RiskTier.MEDIUM
    else:
        overall = RiskTier.LOW

    summary = f"Found {len(files)} files to sync"
    if high:
        summary += f" ({high} high-risk files)"

    return MergeAnalysis(
        files=files,
        high_risk_count=high,
        medium_risk_count=medium,
        low_risk_count=low,
        risk_level=overall,
        has_conflicts=high > 0,
        safe_to_merge=high == 0,
        summary=summary,
    )


def analyze(
    template_paths: Iterable[str],
    project_root: Path,
    managed: ManagedPathSet | None = None,
) -> MergeAnalysis:
    """Analyze template targets under *project_root*.

    Args:
        template_paths: Template entry paths (``.tmpl`` suffixes allowed).
        project_root: Project directory the templates deploy into.
        managed: Managed path set; defaults to the standard layout.

    Returns:
        The aggregate ``MergeAnalysis``.
    """
    files = analyze_files(template_paths, project_root, managed or ManagedPathSet())
    return build_merge_analysis(files)
