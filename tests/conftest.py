"""Shared pytest fixtures for scaffold-sync tests."""

from datetime import datetime
from pathlib import Path

import pytest
from dotenv import load_dotenv

from scaffold_sync.config import SyncSettings
from scaffold_sync.sync.layout import ProjectLayout
from scaffold_sync.templates import InMemoryTemplateSource
from scaffold_sync.templates.renderer import TemplateContext

load_dotenv()


TEMPLATE_FILES = {
    ".scaffold/config/sections/system.yaml.tmpl": (
        "scaffold:\n"
        '  template_version: "{{ version }}"\n'
        "project:\n"
        '  name: "{{ project_name }}"\n'
    ),
    ".scaffold/config/sections/quality.yaml": (
        "quality:\n"
        "  development_mode: tdd\n"
        "  test_coverage_target: 85\n"
    ),
    ".claude/settings.json.tmpl": (
        '{\n  "env": {\n    "SCAFFOLD_VERSION": "{{ version }}"\n  }\n}\n'
    ),
    ".claude/skills/scaffold-foundation/SKILL.md": "# Foundation\n",
    ".claude/hooks/scaffold/start.sh": "#!/bin/sh\necho start\n",
    "CLAUDE.md": "## Workflow\nplan first\n## Rules\nbe precise\n",
    ".gitignore": "*.pyc\n.env\n",
}


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """An empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def layout() -> ProjectLayout:
    return ProjectLayout()


@pytest.fixture
def template_files() -> dict[str, str]:
    return dict(TEMPLATE_FILES)


@pytest.fixture
def make_source(template_files):
    """Factory fixture building an in-memory template source."""

    def _make(version: str = "2.0.0", files: dict | None = None, **overrides):
        merged = dict(template_files if files is None else files)
        merged.update(overrides)
        return InMemoryTemplateSource(merged, version)

    return _make


@pytest.fixture
def render_context() -> TemplateContext:
    return TemplateContext(
        version="2.0.0",
        project_name="demo",
        project_root="/work/demo",
        platform="linux",
        home_dir="/home/dev",
    )


@pytest.fixture
def settings(project_root: Path) -> SyncSettings:
    """Settings for an unattended run against ``project_root``."""
    return SyncSettings(project_root=project_root, auto_confirm=True)


@pytest.fixture
def fixed_clock():
    """A clock frozen at 2026-01-02 03:04:05."""
    return lambda: datetime(2026, 1, 2, 3, 4, 5)


@pytest.fixture
def write():
    """Write content to ``root/rel``, creating parents."""

    def _write(root: Path, rel: str, content: str) -> Path:
        path = root.joinpath(*rel.split("/"))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
