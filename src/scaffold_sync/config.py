"""Runtime settings for a sync run.

Reads settings from CLI args, environment variables, .env files and the
YAML config file.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    SCAFFOLD_PROJECT_ROOT: Project directory (default: current directory)
    SCAFFOLD_FORCE: Sync even when the template version is unchanged
    SCAFFOLD_AUTO_CONFIRM: Skip the confirmation prompt
    SCAFFOLD_KEEP_BACKUPS: Backups kept after rotation (1-100, default: 5)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .sync.layout import ProjectLayout

logger = logging.getLogger(__name__)

MIN_KEEP_BACKUPS = 1
MAX_KEEP_BACKUPS = 100


@dataclass
class SyncSettings:
    project_root: Path
    state_dir: str = ".scaffold"
    config_dir: str = ".scaffold/config"
    backups_dir: str = ".scaffold-backups"
    agent_dir: str = ".claude"
    namespace: str = "scaffold"
    keep_backups: int = 5
    excluded_dirs: list[str] = field(default_factory=list)
    force: bool = False
    auto_confirm: bool = False
    log_level: str = "INFO"
    log_file: str | None = None

    def layout(self) -> ProjectLayout:
        return ProjectLayout(
            state_dir=self.state_dir,
            config_dir=self.config_dir,
            backups_dir=self.backups_dir,
            agent_dir=self.agent_dir,
            namespace=self.namespace,
        )


def _check_layout_path(name: str, value: str) -> None:
    normalized = value.replace("\\", "/").strip()
    if not normalized:
        raise ValueError(f"Invalid {name}: must not be empty")
    pure = PurePosixPath(normalized)
    if pure.is_absolute() or normalized.startswith("/"):
        raise ValueError(
            f"Invalid {name} '{value}': must be relative to the project root"
        )
    if ".." in pure.parts:
        raise ValueError(f"Invalid {name} '{value}': must not contain '..'")


def validate_settings(settings: SyncSettings) -> None:
    """Validate settings values and raise ValueError if invalid.

    Raises:
        ValueError: For absolute or ``..`` layout paths, an empty or
            slash-containing namespace, or an out-of-range keep count.
    """
    for name in ("state_dir", "config_dir", "backups_dir", "agent_dir"):
        _check_layout_path(name, getattr(settings, name))

    if not settings.namespace.strip():
        raise ValueError("Invalid namespace: must not be empty")
    if "/" in settings.namespace or "\\" in settings.namespace:
        raise ValueError(
            f"Invalid namespace '{settings.namespace}': must be a single name"
        )

    if not (MIN_KEEP_BACKUPS <= settings.keep_backups <= MAX_KEEP_BACKUPS):
        raise ValueError(
            f"Invalid keep_backups {settings.keep_backups}: must be a number "
            f"between {MIN_KEEP_BACKUPS} and {MAX_KEEP_BACKUPS}"
        )


def get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _resolve_flag(cli_value: bool, env_key: str, fallback: bool) -> bool:
    if cli_value:
        return True
    env_value = get_bool_env(env_key)
    if env_value is not None:
        return env_value
    return fallback


def load_config(
    project_root: str | Path | None = None,
    force: bool = False,
    auto_confirm: bool = False,
    keep_backups: int | None = None,
    unified: UnifiedConfig | None = None,
) -> SyncSettings:
    """Load settings with unified precedence.

    The caller is responsible for calling ``load_dotenv()`` beforehand so
    that .env values are visible through ``os.getenv()``.

    Args:
        project_root: Override project directory.
        force: ``--force`` CLI flag.
        auto_confirm: ``--yes`` CLI flag.
        keep_backups: ``--keep-backups`` CLI value.
        unified: Pre-built file config; discovered and loaded when ``None``.

    Returns:
        Validated ``SyncSettings`` instance.

    Raises:
        ValueError: If an env var is malformed or a value is invalid.
    """
    root_value = project_root or os.getenv("SCAFFOLD_PROJECT_ROOT") or Path.cwd()
    root = Path(root_value).expanduser().resolve()

    if unified is None:
        unified = build_config(load_hierarchical_config(root))

    final_force = _resolve_flag(force, "SCAFFOLD_FORCE", unified.sync.force)
    final_confirm = _resolve_flag(
        auto_confirm, "SCAFFOLD_AUTO_CONFIRM", unified.sync.auto_confirm
    )

    if keep_backups is not None:
        final_keep = keep_backups
    else:
        keep_raw = os.getenv("SCAFFOLD_KEEP_BACKUPS")
        if keep_raw is not None:
            try:
                final_keep = int(keep_raw)
            except ValueError:
                raise ValueError(
                    f"Invalid SCAFFOLD_KEEP_BACKUPS '{keep_raw}': must be a number "
                    f"between {MIN_KEEP_BACKUPS} and {MAX_KEEP_BACKUPS}"
                ) from None
        else:
            final_keep = unified.backup.keep_count

    paths = unified.paths
    settings = SyncSettings(
        project_root=root,
        state_dir=paths.state_dir,
        config_dir=paths.config_dir,
        backups_dir=paths.backups_dir,
        agent_dir=paths.agent_dir,
        namespace=paths.namespace,
        keep_backups=final_keep,
        excluded_dirs=list(unified.backup.excluded_dirs),
        force=final_force,
        auto_confirm=final_confirm,
        log_level=unified.logging.level,
        log_file=unified.logging.file,
    )

    validate_settings(settings)
    return settings
