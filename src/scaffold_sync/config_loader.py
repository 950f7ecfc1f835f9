"""
Configuration file discovery and loading for scaffold_sync.

Provides convention-based config file discovery, env var interpolation,
and a shallow merge with "project wins" semantics.

Usage:
    from scaffold_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config(project_root)
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SCAFFOLD_SYNC_CONFIG"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` patterns with env values.

    * ``${VAR}`` becomes the variable's value, or ``""`` when unset.
    * ``${VAR:-default}`` uses *default* when VAR is unset or empty.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        default = match.group(2)
        return default if default is not None else ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files(project_root: Path | None = None) -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``SCAFFOLD_SYNC_CONFIG`` env var (explicit single path)
        2. ``.scaffold/sync.yml`` in the project root (default: CWD)
        3. ``.scaffold/sync.yaml`` in the project root
        4. ``~/.config/scaffold_sync/config.yml`` (XDG global)

    Only paths that exist on disk are returned.
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    root = project_root or Path.cwd()
    candidates.append(root / ".scaffold" / "sync.yml")
    candidates.append(root / ".scaffold" / "sync.yaml")
    candidates.append(Path.home() / ".config" / "scaffold_sync" / "config.yml")

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# 3. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config(project_root: Path | None = None) -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are loaded from lowest precedence to highest.  Each file's
    top-level keys **replace** (not deep-merge) those from earlier files.
    Env var interpolation is applied after merging.

    Returns an empty dict when no config files exist (zero-config).
    """
    paths = discover_config_files(project_root)
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            with open(path, encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
