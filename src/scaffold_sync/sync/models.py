"""Pydantic models for the template sync engine.

Defines the data contracts used across all sync modules:

- ``RiskTier``, ``MergeStrategy``, ``ChangeType``: per-file classification.
- ``FileAnalysis`` / ``MergeAnalysis``: the read-only risk report shown
  before anything is changed.
- ``BackupMetadata``: the ``backup_metadata.json`` sidecar.
- ``MergeResult`` / ``TextConflict``: outcome of a file-level merge.
- ``RestoredFile`` / ``DeployedFile``: per-file results of restore/deploy.
- ``SyncPhase``, ``StepStatus``, ``StepOutcome``, ``SyncReport``: the
  orchestrator's state machine and its aggregate report.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class RiskTier(str, Enum):
    """How likely a change is to overwrite meaningful user content."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MergeStrategy(str, Enum):
    """Merge strategy selected for a file by name/extension."""

    SECTION_MERGE = "SectionMerge"
    ENTRY_MERGE = "EntryMerge"
    JSON_MERGE = "JSONMerge"
    YAML_DEEP = "YAMLDeep"
    LINE_MERGE = "LineMerge"


class ChangeType(str, Enum):
    NEW_FILE = "new file"
    UPDATE_EXISTING = "update existing"


class FileAnalysis(BaseModel):
    """Risk assessment of one template target.

    Attributes:
        path: Project-relative display path (``.tmpl`` suffix stripped).
        existed_before: Whether the target existed when analysed.
        risk: Risk tier.
        strategy: Merge strategy that applies to the file.
        change_type: ``new file`` or ``update existing``.
        note: Optional free-form remark.
    """

    path: str
    existed_before: bool
    risk: RiskTier
    strategy: MergeStrategy
    change_type: ChangeType
    note: str = ""

    model_config = {"frozen": True}


class MergeAnalysis(BaseModel):
    """Aggregate risk report over all analysed files.

    Built by ``analyzer.build_merge_analysis`` which guarantees that
    ``risk_level`` is the highest tier present and that ``safe_to_merge``
    holds exactly when there are no high-risk files.
    """

    files: list[FileAnalysis] = []
    high_risk_count: int = 0
    medium_risk_count: int = 0
    low_risk_count: int = 0
    risk_level: RiskTier = RiskTier.LOW
    has_conflicts: bool = False
    safe_to_merge: bool = True
    summary: str = ""

    model_config = {"frozen": True}

    @property
    def total(self) -> int:
        return len(self.files)


class BackupMetadata(BaseModel):
    """Contents of ``backup_metadata.json``."""

    timestamp: str
    description: str = "config_backup"
    backed_up_items: list[str] = []
    excluded_items: list[str] = []
    excluded_dirs: list[str] = []
    project_root: str
    backup_type: str = "config"
    template_defaults_dir: str | None = None

    model_config = {"frozen": True}


class TextConflict(BaseModel):
    """A region or key changed differently by the user and the template.

    Attributes:
        location: Line range, section heading or dotted key path.
        current: The user's version.
        updated: The template's version.
    """

    location: str
    current: str
    updated: str

    model_config = {"frozen": True}


class MergeResult(BaseModel):
    content: str
    strategy: MergeStrategy
    has_conflict: bool = False
    conflicts: list[TextConflict] = []

    model_config = {"frozen": True}


class RestoreMethod(str, Enum):
    """How a backed-up config file was folded back into the project."""

    THREE_WAY = "three_way"
    TWO_WAY = "two_way"
    RAW_FALLBACK = "raw_fallback"
    ORPHAN = "orphan"
    FAILED = "failed"


class RestoredFile(BaseModel):
    path: str
    method: RestoreMethod
    warning: str | None = None

    model_config = {"frozen": True}


class DeployAction(str, Enum):
    """What the deployer did with one template target."""

    WRITTEN = "written"
    MERGED = "merged"
    CONFLICT = "conflict"
    PRESERVED = "preserved"


class DeployedFile(BaseModel):
    path: str
    action: DeployAction
    strategy: MergeStrategy | None = None
    note: str | None = None

    model_config = {"frozen": True}


class SyncPhase(str, Enum):
    """States of the sync state machine."""

    VERSION_CHECK = "version_check"
    CONFIRM = "confirm"
    BACKUP = "backup"
    CLEAN = "clean"
    DEPLOY = "deploy"
    RESTORE = "restore"
    ROTATE = "rotate"
    DONE = "done"
    FAILED = "failed"


class StepStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    FATAL = "fatal"


class StepOutcome(BaseModel):
    """Result of one orchestrator step.

    Attributes:
        phase: The step that ran.
        status: ``ok``, ``degraded`` or ``fatal``; drives the transition.
        message: Human-readable description.
        path: Path involved in a failure, if any.
        halt: Stop successfully after this step (up to date / cancelled).
    """

    phase: SyncPhase
    status: StepStatus = StepStatus.OK
    message: str = ""
    path: str | None = None
    halt: bool = False

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full sync run."""

    project_root: str
    template_version: str
    project_version: str | None = None
    started_at: str
    completed_at: str | None = None
    final_phase: SyncPhase
    halted_at: SyncPhase | None = None
    cancelled: bool = False
    outcomes: list[StepOutcome] = []
    analysis: MergeAnalysis | None = None
    backup_dir: str | None = None
    deployed: list[DeployedFile] = []
    restored: list[RestoredFile] = []
    deleted_backups: int = 0

    model_config = {"frozen": True}

    @property
    def succeeded(self) -> bool:
        return self.final_phase == SyncPhase.DONE

    @property
    def failed(self) -> bool:
        return self.final_phase == SyncPhase.FAILED

    @property
    def degraded(self) -> list[StepOutcome]:
        """Outcomes that completed with a degradation."""
        return [o for o in self.outcomes if o.status == StepStatus.DEGRADED]

    @property
    def up_to_date(self) -> bool:
        return self.halted_at == SyncPhase.VERSION_CHECK

    @property
    def fatal(self) -> StepOutcome | None:
        for outcome in self.outcomes:
            if outcome.status == StepStatus.FATAL:
                return outcome
        return None

    def summary(self) -> str:
        """Format a one-line summary of the run."""
        if self.failed:
            fatal = self.fatal
            reason = fatal.message if fatal else "unknown error"
            return f"Sync failed: {reason}"
        if self.up_to_date:
            return "Template version up-to-date. Skipping sync."
        if self.cancelled:
            return "Merge cancelled by user."
        line = (
            f"Template sync complete: {len(self.deployed)} files deployed, "
            f"{len(self.restored)} config files restored"
        )
        if self.degraded:
            line += f" ({len(self.degraded)} steps degraded)"
        return line
