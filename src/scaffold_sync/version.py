"""Reading the template version a project was last synced with.

The version lives at ``<namespace>.template_version`` in the system config
section (``.scaffold/config/sections/system.yaml``).  Anything that stops
it from being read yields ``UNSET_VERSION``, which never matches a real
template version and therefore always triggers a sync.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from scaffold_sync.errors import VersionReadError
from scaffold_sync.sync.layout import ProjectLayout

logger = logging.getLogger(__name__)

UNSET_VERSION = "0.0.0"
MAX_CONFIG_SIZE = 10 * 1024 * 1024


def load_project_version(project_root: Path, layout: ProjectLayout) -> str:
    """Read the project's template version, raising on any problem.

    Returns:
        The version string, or ``UNSET_VERSION`` when the file or the key
        is absent.

    Raises:
        VersionReadError: If the file is oversized, unreadable or not YAML.
    """
    rel = layout.system_section_path
    config_path = layout.resolve(project_root, rel)
    try:
        size = config_path.stat().st_size
    except FileNotFoundError:
        return UNSET_VERSION
    except OSError as exc:
        raise VersionReadError(str(exc), operation="stat", path=rel) from exc

    if size > MAX_CONFIG_SIZE:
        raise VersionReadError(
            f"config file too large: {size} bytes (max: {MAX_CONFIG_SIZE})",
            operation="read",
            path=rel,
        )

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise VersionReadError(str(exc), operation="read", path=rel) from exc
    except yaml.YAMLError as exc:
        raise VersionReadError(str(exc), operation="parse", path=rel) from exc

    if not isinstance(data, dict):
        return UNSET_VERSION
    section = data.get(layout.namespace)
    if not isinstance(section, dict):
        return UNSET_VERSION
    value = section.get("template_version")
    if value is None or str(value).strip() == "":
        return UNSET_VERSION
    return str(value).strip()


def read_project_version(project_root: Path, layout: ProjectLayout | None = None) -> str:
    """Like ``load_project_version`` but failures become ``UNSET_VERSION``."""
    try:
        return load_project_version(project_root, layout or ProjectLayout())
    except VersionReadError as exc:
        logger.warning("Cannot read project template version, forcing sync: %s", exc)
        return UNSET_VERSION


def versions_match(template_version: str, project_version: str) -> bool:
    """True when both versions are set and equal; the unset sentinel never matches."""
    if project_version == UNSET_VERSION or template_version == UNSET_VERSION:
        return False
    return template_version.strip() == project_version.strip()
