"""Template sync engine.

Keeps a project's scaffolding (config sections, agent instructions,
settings and ignore files) in line with a newer template version without
losing the user's customizations.

Architecture
------------
The engine uses **baseline-driven three-way merging**: the template
content a project was deployed from is kept (in the backup's
``.template-defaults/`` and in the baseline store), so a later sync can
tell a value the user never touched from one the user customized.

Modules:

- ``layout``       -- ``ProjectLayout`` and ``ManagedPathSet``.
- ``models``       -- risk, analysis, backup, merge and report contracts.
- ``risk``         -- per-file risk tier and merge strategy.
- ``analyzer``     -- read-only ``MergeAnalysis`` shown before confirming.
- ``merger``       -- three-way/two-way tree merge and YAML entry points.
- ``strategies``   -- line, entry, section and structured file merges.
- ``manifest``     -- ``Manifest``: deploy provenance and baseline store.
- ``backup``       -- ``BackupManager``: snapshot, restore, rotate.
- ``confirm``      -- ``auto_confirm`` and ``PromptConfirmer``.
- ``reporter``     -- human-readable and JSON formatting.
- ``orchestrator`` -- ``SyncOrchestrator``: the full sync state machine.
  Import it from ``scaffold_sync.sync.orchestrator``.

Usage example
-------------
::

    from pathlib import Path
    from scaffold_sync.config import load_config
    from scaffold_sync.sync import format_sync_report
    from scaffold_sync.sync.orchestrator import SyncContext, SyncOrchestrator
    from scaffold_sync.templates import bundled_source

    settings = load_config(project_root=Path("."), auto_confirm=True)
    context = SyncContext(
        project_root=settings.project_root,
        settings=settings,
        template_source=bundled_source(),
    )
    report = SyncOrchestrator(context).run()
    print(format_sync_report(report))
"""

from .analyzer import analyze
from .backup import BackupManager
from .layout import ManagedPathSet, ProjectLayout
from .manifest import Manifest, Provenance
from .merger import merge_yaml_2way, merge_yaml_3way
from .models import (
    FileAnalysis,
    MergeAnalysis,
    MergeResult,
    MergeStrategy,
    RiskTier,
    StepStatus,
    SyncPhase,
    SyncReport,
)
from .reporter import (
    format_merge_analysis,
    format_sync_report,
    report_to_json,
)
from .strategies import merge_file

__all__ = [
    "BackupManager",
    "FileAnalysis",
    "ManagedPathSet",
    "Manifest",
    "MergeAnalysis",
    "MergeResult",
    "MergeStrategy",
    "ProjectLayout",
    "Provenance",
    "RiskTier",
    "StepStatus",
    "SyncPhase",
    "SyncReport",
    "analyze",
    "format_merge_analysis",
    "format_sync_report",
    "merge_file",
    "merge_yaml_2way",
    "merge_yaml_3way",
    "report_to_json",
]
