"""Tests for the project layout and managed path membership.

Covers:
- Anything under the config directory is managed
- Namespaced items inside agent subdirectories are managed
- User items next to them are not, nor nested copies away from the project root
- Derived layout paths and clean targets
"""

from pathlib import Path

import pytest

from scaffold_sync.sync.layout import (
    ManagedPathSet,
    ProjectLayout,
    display_path,
    posix_relative,
)


class TestManagedPathSet:
    """Tests for ManagedPathSet.is_managed()."""

    @pytest.mark.parametrize(
        "path",
        [
            ".scaffold/config/sections/system.yaml",
            ".scaffold/config/anything.txt",
            ".claude/skills/scaffold-foundation/SKILL.md",
            ".claude/skills/scaffold/x.md",
            ".claude/agents/scaffold/reviewer.md",
            ".claude/commands/scaffold/sync.md",
            ".claude/rules/scaffold/style.md",
            ".claude/output-styles/scaffold/brief.md",
            ".claude/hooks/scaffold/start.sh",
        ],
    )
    def test_managed(self, path):
        assert ManagedPathSet().is_managed(path)
        assert path in ManagedPathSet()

    @pytest.mark.parametrize(
        "path",
        [
            ".claude/settings.json",
            ".claude/skills/my-skill/SKILL.md",
            ".claude/agents/custom/helper.md",
            ".claude/unknown/scaffold/x.md",
            "vendor/.claude/agents/scaffold/x.md",
            "docs/.scaffold/config/sections/user.yaml",
            ".scaffold/config",
            ".scaffold/manifest.json",
            "CLAUDE.md",
            ".gitignore",
        ],
    )
    def test_not_managed(self, path):
        assert not ManagedPathSet().is_managed(path)

    def test_backslashes_normalized(self):
        assert ManagedPathSet().is_managed(".scaffold\\config\\sections\\user.yaml")

    def test_custom_namespace(self):
        managed = ManagedPathSet(namespace="acme")
        assert managed.is_managed(".claude/skills/acme-base/SKILL.md")
        assert not managed.is_managed(".claude/skills/scaffold-foundation/SKILL.md")

    def test_contains_rejects_non_strings(self):
        assert 42 not in ManagedPathSet()


class TestProjectLayout:
    def test_derived_paths(self):
        layout = ProjectLayout()
        assert layout.sections_dir == ".scaffold/config/sections"
        assert layout.settings_path == ".claude/settings.json"
        assert layout.system_section_path == ".scaffold/config/sections/system.yaml"
        assert layout.manifest_path == ".scaffold/manifest.json"
        assert layout.baselines_dir == ".scaffold/baselines"

    def test_resolve(self, tmp_path: Path):
        layout = ProjectLayout()
        assert layout.resolve(tmp_path, "a/b/c.txt") == tmp_path / "a" / "b" / "c.txt"

    def test_managed_paths_follow_layout(self):
        layout = ProjectLayout(config_dir="cfg", agent_dir=".agent", namespace="ns")
        managed = layout.managed_paths()
        assert managed.is_managed("cfg/x.yaml")
        assert managed.is_managed(".agent/rules/ns/a.md")

    def test_clean_targets(self):
        targets = ProjectLayout().clean_targets()
        assert targets[0] == (".claude/settings.json", False)
        assert (".claude/skills/scaffold*", True) in targets
        assert targets[-1] == (".scaffold/config", False)
        assert sum(1 for _, is_glob in targets if is_glob) == 1


class TestPathHelpers:
    def test_display_path_strips_tmpl(self):
        assert display_path(".claude/settings.json.tmpl") == ".claude/settings.json"
        assert display_path("CLAUDE.md") == "CLAUDE.md"

    def test_posix_relative(self, tmp_path: Path):
        assert posix_relative(tmp_path / "a" / "b.txt", tmp_path) == "a/b.txt"
