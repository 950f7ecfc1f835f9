"""Project layout and the set of engine-managed paths.

``ProjectLayout`` names every project-relative location the engine reads
or writes.  ``ManagedPathSet`` answers whether a path belongs to a subtree
the template system owns outright: such paths are deleted and redeployed
wholesale on every sync and never merged or shown for confirmation.

Membership is a pure function of the path string:

1. Anything under the config directory (``.scaffold/config/``) is managed.
2. Inside the agent directory (``.claude``), an item directly under one of
   ``skills``, ``rules``, ``agents``, ``commands``, ``output-styles`` or
   ``hooks`` is managed when its name starts with the namespace
   (``scaffold``), e.g. ``.claude/skills/scaffold-foundation/SKILL.md``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath

MANAGED_KINDS = (
    "skills",
    "rules",
    "agents",
    "commands",
    "output-styles",
    "hooks",
)

SETTINGS_FILE = "settings.json"
INSTRUCTIONS_FILE = "CLAUDE.md"
IGNORE_FILE = ".gitignore"
SECTIONS_SUBDIR = "sections"
SYSTEM_SECTION = "system.yaml"
MANIFEST_FILE = "manifest.json"
BASELINES_SUBDIR = "baselines"


def _split(path: str) -> list[str]:
    return [part for part in path.replace("\\", "/").split("/") if part]


@dataclass(frozen=True)
class ProjectLayout:
    """Project-relative locations used by the sync engine.

    Attributes:
        state_dir: Tool-owned state (manifest, baselines, tool config).
        config_dir: The live, mutable configuration subtree.
        backups_dir: Root of the timestamped backup directories.
        agent_dir: Agent tooling directory holding managed subtrees.
        namespace: Name prefix of managed items inside ``agent_dir``.
    """

    state_dir: str = ".scaffold"
    config_dir: str = ".scaffold/config"
    backups_dir: str = ".scaffold-backups"
    agent_dir: str = ".claude"
    namespace: str = "scaffold"

    @property
    def sections_dir(self) -> str:
        return f"{self.config_dir}/{SECTIONS_SUBDIR}"

    @property
    def settings_path(self) -> str:
        return f"{self.agent_dir}/{SETTINGS_FILE}"

    @property
    def system_section_path(self) -> str:
        return f"{self.sections_dir}/{SYSTEM_SECTION}"

    @property
    def manifest_path(self) -> str:
        return f"{self.state_dir}/{MANIFEST_FILE}"

    @property
    def baselines_dir(self) -> str:
        return f"{self.state_dir}/{BASELINES_SUBDIR}"

    def resolve(self, project_root: Path, rel_path: str) -> Path:
        """Join a project-relative POSIX path onto *project_root*."""
        return project_root.joinpath(*_split(rel_path))

    def managed_paths(self) -> ManagedPathSet:
        return ManagedPathSet(
            config_dir=self.config_dir,
            agent_dir=self.agent_dir,
            namespace=self.namespace,
        )

    def clean_targets(self) -> list[tuple[str, bool]]:
        """Return ``(relative_path, is_glob)`` pairs removed before deploy.

        The settings file is included even though it is not a managed
        subtree: it is always regenerated from the template.  The config
        directory comes last; it has already been backed up.
        """
        ns = self.namespace
        agent = self.agent_dir
        return [
            (self.settings_path, False),
            (f"{agent}/commands/{ns}", False),
            (f"{agent}/agents/{ns}", False),
            (f"{agent}/skills/{ns}*", True),
            (f"{agent}/rules/{ns}", False),
            (f"{agent}/output-styles/{ns}", False),
            (f"{agent}/hooks/{ns}", False),
            (self.config_dir, False),
        ]


@dataclass(frozen=True)
class ManagedPathSet:
    """Pure membership test for engine-managed paths."""

    config_dir: str = ".scaffold/config"
    agent_dir: str = ".claude"
    namespace: str = "scaffold"

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.is_managed(path)

    def is_managed(self, path: str) -> bool:
        parts = _split(path)
        config_parts = _split(self.config_dir)
        if (
            len(parts) > len(config_parts)
            and parts[: len(config_parts)] == config_parts
        ):
            return True

        agent_parts = _split(self.agent_dir)
        width = len(agent_parts)
        if parts[:width] != agent_parts:
            return False
        rest = parts[width:]
        return (
            len(rest) >= 2
            and rest[0] in MANAGED_KINDS
            and rest[1].startswith(self.namespace)
        )


def display_path(template_path: str) -> str:
    """Strip a trailing ``.tmpl`` so the path names the rendered target."""
    return template_path.removesuffix(".tmpl")


def posix_relative(path: Path, start: Path) -> str:
    """Return *path* relative to *start* with ``/`` separators."""
    return PurePosixPath(*path.relative_to(start).parts).as_posix()
