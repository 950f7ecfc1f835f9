"""Unified configuration schema for scaffold_sync.

Defines Pydantic models for the sync tool's config file, with sections for
project paths, backups, sync behaviour and logging.

Usage:
    from scaffold_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class PathsConfig(BaseModel):
    """Project-relative locations the engine reads and writes."""

    state_dir: str = Field(default=".scaffold", description="Tool state directory")
    config_dir: str = Field(
        default=".scaffold/config", description="Live configuration subtree"
    )
    backups_dir: str = Field(
        default=".scaffold-backups", description="Root of timestamped backups"
    )
    agent_dir: str = Field(default=".claude", description="Agent tooling directory")
    namespace: str = Field(
        default="scaffold", description="Prefix of managed items in agent_dir"
    )

    model_config = {"frozen": True}


class BackupConfig(BaseModel):
    keep_count: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of backups kept after rotation (1-100)",
    )
    excluded_dirs: list[str] = Field(
        default_factory=list,
        description="Config-relative directories left out of backups",
    )

    model_config = {"frozen": True}


class SyncBehaviorConfig(BaseModel):
    force: bool = Field(default=False, description="Sync even when up to date")
    auto_confirm: bool = Field(
        default=False, description="Skip the confirmation prompt"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    always valid.
    """

    paths: PathsConfig = Field(default_factory=PathsConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    sync: SyncBehaviorConfig = Field(default_factory=SyncBehaviorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from ``load_hierarchical_config()`` output.

    Missing sections get defaults.

    Raises:
        pydantic.ValidationError: If a value is out of range or mistyped.
    """
    if not raw_data:
        return UnifiedConfig()
    return UnifiedConfig(**raw_data)
