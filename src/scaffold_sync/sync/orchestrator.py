"""Sync orchestrator: the end-to-end template sync as a state machine.

States run in a fixed order::

    version_check -> confirm -> backup -> clean -> deploy -> restore -> rotate -> done

Each step returns a ``StepOutcome``.  ``ok`` and ``degraded`` advance to
the next state, ``fatal`` moves to ``failed``, and ``halt`` stops the run
successfully (project already up to date, or the user declined).

Nothing before ``backup`` changes the filesystem, and nothing destructive
runs before the backup directory and its metadata are written.

Error handling follows the step: analysis problems are logged and
ignored, backup/clean/deploy errors are fatal, restore problems degrade
per file, rotation errors are only logged.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from scaffold_sync.config import SyncSettings
from scaffold_sync.errors import CleanFailureError, ConfirmationError, SyncError
from scaffold_sync.templates import TemplateSource
from scaffold_sync.templates.deployer import Deployer
from scaffold_sync.templates.renderer import TemplateContext, TemplateRenderer
from scaffold_sync.version import UNSET_VERSION, read_project_version, versions_match

from .analyzer import analyze, build_merge_analysis
from .backup import BackupManager
from .confirm import Confirmer, PromptConfirmer
from .layout import ProjectLayout
from .manifest import Manifest
from .models import (
    DeployedFile,
    MergeAnalysis,
    RestoredFile,
    RestoreMethod,
    StepOutcome,
    StepStatus,
    SyncPhase,
    SyncReport,
)

logger = logging.getLogger(__name__)

_NEXT = {
    SyncPhase.VERSION_CHECK: SyncPhase.CONFIRM,
    SyncPhase.CONFIRM: SyncPhase.BACKUP,
    SyncPhase.BACKUP: SyncPhase.CLEAN,
    SyncPhase.CLEAN: SyncPhase.DEPLOY,
    SyncPhase.DEPLOY: SyncPhase.RESTORE,
    SyncPhase.RESTORE: SyncPhase.ROTATE,
    SyncPhase.ROTATE: SyncPhase.DONE,
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Clean step
# ---------------------------------------------------------------------------


def clean_managed_paths(project_root: Path, layout: ProjectLayout) -> list[str]:
    """Remove the settings file, managed namespace subtrees and the config dir.

    Returns:
        Project-relative paths that were removed.

    Raises:
        CleanFailureError: If a target exists but cannot be removed.
    """
    removed: list[str] = []
    for rel, is_glob in layout.clean_targets():
        if is_glob:
            parent_rel, _, pattern = rel.rpartition("/")
            parent = layout.resolve(project_root, parent_rel)
            try:
                matches = sorted(parent.glob(pattern)) if parent.is_dir() else []
            except OSError as exc:
                raise CleanFailureError(str(exc), operation="clean", path=rel) from exc
            targets = [(f"{parent_rel}/{m.name}", m) for m in matches]
        else:
            targets = [(rel, layout.resolve(project_root, rel))]

        for shown, path in targets:
            try:
                if path.is_dir() and not path.is_symlink():
                    shutil.rmtree(path)
                else:
                    path.unlink()
            except FileNotFoundError:
                logger.info("Skipped %s (not found)", shown)
                continue
            except OSError as exc:
                raise CleanFailureError(str(exc), operation="clean", path=shown) from exc
            logger.info("Removed %s", shown)
            removed.append(shown)
    return removed


# ---------------------------------------------------------------------------
# Context and run state
# ---------------------------------------------------------------------------


@dataclass
class SyncContext:
    """Everything a sync run depends on, built explicitly by the caller.

    Attributes:
        project_root: Project directory.
        settings: Resolved settings (layout, force, auto_confirm, keep count).
        template_source: Templates to deploy.
        baseline_source: Templates the project was deployed from, used as
            the restore merge base; defaults to ``template_source``.
        render_context: Variables for ``.tmpl`` rendering; derived from the
            project when ``None``.
        confirmer: Asked before any change unless ``auto_confirm`` is set.
        version_reader: Reads the project's template version.
        clock: Current local time, used for backup names.
    """

    project_root: Path
    settings: SyncSettings
    template_source: TemplateSource
    baseline_source: TemplateSource | None = None
    render_context: TemplateContext | None = None
    confirmer: Confirmer | None = None
    version_reader: Callable[[Path, ProjectLayout], str] = read_project_version
    clock: Callable[[], datetime] = datetime.now
    renderer: TemplateRenderer | None = None


@dataclass
class _RunState:
    project_version: str | None = None
    analysis: MergeAnalysis | None = None
    backup_dir: Path | None = None
    deployed: list[DeployedFile] = field(default_factory=list)
    restored: list[RestoredFile] = field(default_factory=list)
    deleted_backups: int = 0
    cancelled: bool = False


class SyncOrchestrator:
    """Run one template sync for a project.

    Args:
        context: The explicit dependencies of the run.
    """

    def __init__(self, context: SyncContext) -> None:
        self.context = context
        self.project_root = context.project_root
        self.layout = context.settings.layout()
        self.backups = BackupManager(
            self.layout,
            excluded_dirs=context.settings.excluded_dirs,
            clock=context.clock,
        )
        self.deployer = Deployer(
            context.template_source, self.layout, context.renderer
        )
        self.manifest = Manifest(
            self.layout.resolve(self.project_root, self.layout.state_dir)
        )
        self._handlers: dict[SyncPhase, Callable[[_RunState], StepOutcome]] = {
            SyncPhase.VERSION_CHECK: self._check_version,
            SyncPhase.CONFIRM: self._confirm,
            SyncPhase.BACKUP: self._backup,
            SyncPhase.CLEAN: self._clean,
            SyncPhase.DEPLOY: self._deploy,
            SyncPhase.RESTORE: self._restore,
            SyncPhase.ROTATE: self._rotate,
        }

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> SyncReport:
        """Execute the sync and return its report.  Never raises ``SyncError``."""
        started_at = _now()
        state = _RunState()
        outcomes: list[StepOutcome] = []
        halted_at: SyncPhase | None = None
        phase = SyncPhase.VERSION_CHECK

        while phase not in (SyncPhase.DONE, SyncPhase.FAILED):
            logger.debug("Sync step: %s", phase.value)
            outcome = self._handlers[phase](state)
            outcomes.append(outcome)

            if outcome.status == StepStatus.FATAL:
                logger.error("Sync failed during %s: %s", phase.value, outcome.message)
                phase = SyncPhase.FAILED
            elif outcome.halt:
                halted_at = phase
                phase = SyncPhase.DONE
            else:
                if outcome.status == StepStatus.DEGRADED:
                    logger.warning("%s degraded: %s", phase.value, outcome.message)
                phase = _NEXT[phase]

        return SyncReport(
            project_root=str(self.project_root),
            template_version=self.context.template_source.version,
            project_version=state.project_version,
            started_at=started_at,
            completed_at=_now(),
            final_phase=phase,
            halted_at=halted_at,
            cancelled=state.cancelled,
            outcomes=outcomes,
            analysis=state.analysis,
            backup_dir=str(state.backup_dir) if state.backup_dir else None,
            deployed=state.deployed,
            restored=state.restored,
            deleted_backups=state.deleted_backups,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _check_version(self, state: _RunState) -> StepOutcome:
        template_version = self.context.template_source.version
        try:
            project_version = self.context.version_reader(self.project_root, self.layout)
        except (SyncError, OSError) as exc:
            logger.warning("Cannot read project version, forcing sync: %s", exc)
            project_version = UNSET_VERSION
        state.project_version = project_version

        if versions_match(template_version, project_version) and not self.context.settings.force:
            logger.info("Template version %s up-to-date", template_version)
            return StepOutcome(
                phase=SyncPhase.VERSION_CHECK,
                message=f"template version {template_version} up-to-date",
                halt=True,
            )
        return StepOutcome(
            phase=SyncPhase.VERSION_CHECK,
            message=f"project {project_version} -> template {template_version}",
        )

    def _analyze(self) -> MergeAnalysis:
        try:
            return analyze(
                self.deployer.list_templates(),
                self.project_root,
                self.layout.managed_paths(),
            )
        except (SyncError, OSError) as exc:
            logger.warning("Merge analysis failed, continuing without it: %s", exc)
            return build_merge_analysis([])

    def _confirm(self, state: _RunState) -> StepOutcome:
        state.analysis = self._analyze()
        logger.info(state.analysis.summary)

        if self.context.settings.auto_confirm:
            logger.info("Auto-confirming merge")
            return StepOutcome(phase=SyncPhase.CONFIRM, message="auto-confirmed")

        confirmer = self.context.confirmer or PromptConfirmer()
        try:
            proceed = confirmer(state.analysis)
        except ConfirmationError as exc:
            return StepOutcome(
                phase=SyncPhase.CONFIRM, status=StepStatus.FATAL, message=str(exc)
            )
        if not proceed:
            state.cancelled = True
            logger.info("Merge cancelled by user")
            return StepOutcome(
                phase=SyncPhase.CONFIRM, message="cancelled by user", halt=True
            )
        return StepOutcome(phase=SyncPhase.CONFIRM, message="confirmed")

    def _backup(self, state: _RunState) -> StepOutcome:
        source = self.context.baseline_source or self.context.template_source
        try:
            self.backups.discard_incomplete(self.project_root)
            state.backup_dir = self.backups.snapshot(self.project_root, source)
        except SyncError as exc:
            return StepOutcome(
                phase=SyncPhase.BACKUP,
                status=StepStatus.FATAL,
                message=str(exc),
                path=exc.path,
            )
        if state.backup_dir is None:
            return StepOutcome(phase=SyncPhase.BACKUP, message="no config to back up")
        return StepOutcome(phase=SyncPhase.BACKUP, message=f"backed up to {state.backup_dir}")

    def _clean(self, state: _RunState) -> StepOutcome:
        try:
            removed = clean_managed_paths(self.project_root, self.layout)
        except CleanFailureError as exc:
            return StepOutcome(
                phase=SyncPhase.CLEAN,
                status=StepStatus.FATAL,
                message=str(exc),
                path=exc.path,
            )
        return StepOutcome(phase=SyncPhase.CLEAN, message=f"removed {len(removed)} paths")

    def _deploy(self, state: _RunState) -> StepOutcome:
        context = self.context.render_context or TemplateContext.for_project(
            self.project_root, self.context.template_source.version
        )
        manifest_state = self.manifest.load()
        try:
            state.deployed = self.deployer.deploy(
                self.project_root, self.manifest, manifest_state, context
            )
        except SyncError as exc:
            return StepOutcome(
                phase=SyncPhase.DEPLOY,
                status=StepStatus.FATAL,
                message=str(exc),
                path=exc.path,
            )
        return StepOutcome(
            phase=SyncPhase.DEPLOY, message=f"deployed {len(state.deployed)} files"
        )

    def _restore(self, state: _RunState) -> StepOutcome:
        if state.backup_dir is None:
            return StepOutcome(phase=SyncPhase.RESTORE, message="skipped, no backup")
        try:
            state.restored = self.backups.restore(self.project_root, state.backup_dir)
        except OSError as exc:
            return StepOutcome(
                phase=SyncPhase.RESTORE,
                status=StepStatus.DEGRADED,
                message=f"restore incomplete: {exc}",
            )

        problems = [
            r
            for r in state.restored
            if r.method in (RestoreMethod.FAILED, RestoreMethod.RAW_FALLBACK)
        ]
        if problems:
            return StepOutcome(
                phase=SyncPhase.RESTORE,
                status=StepStatus.DEGRADED,
                message=f"{len(problems)} config files need review",
                path=problems[0].path,
            )
        return StepOutcome(
            phase=SyncPhase.RESTORE, message=f"restored {len(state.restored)} config files"
        )

    def _rotate(self, state: _RunState) -> StepOutcome:
        try:
            state.deleted_backups = self.backups.rotate(
                self.project_root, self.context.settings.keep_backups
            )
        except (OSError, ValueError) as exc:
            return StepOutcome(
                phase=SyncPhase.ROTATE,
                status=StepStatus.DEGRADED,
                message=f"rotation failed: {exc}",
            )
        return StepOutcome(
            phase=SyncPhase.ROTATE, message=f"deleted {state.deleted_backups} old backups"
        )
