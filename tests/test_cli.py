"""Tests for the scaffold-sync command line.

Covers:
- update: first sync, up-to-date rerun, --force, --json
- analyze: text and JSON output
- backups / restore / rotate subcommands
- --templates with a custom template directory
- Invalid settings and unknown backups exit with status 1
- --quiet and --log-format reach the logging setup
"""

import json
from unittest.mock import patch

import pytest
import yaml

from scaffold_sync import __version__
from scaffold_sync.cli import build_parser, main

SECTIONS = ".scaffold/config/sections"


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch):
    for name in (
        "SCAFFOLD_PROJECT_ROOT",
        "SCAFFOLD_FORCE",
        "SCAFFOLD_AUTO_CONFIRM",
        "SCAFFOLD_KEEP_BACKUPS",
        "SCAFFOLD_SYNC_CONFIG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)


def _cli(project_root, *args):
    return main(["--project-root", str(project_root), *args])


class TestParser:
    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_update_flags(self):
        args = build_parser().parse_args(["update", "-y", "--force", "--keep-backups", "3"])
        assert args.yes and args.force
        assert args.keep_backups == 3

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestUpdate:
    def test_first_sync_with_bundled_templates(self, project_root, capsys):
        assert _cli(project_root, "update", "--yes") == 0

        out = capsys.readouterr().out
        assert out.startswith("Template sync complete:")
        system = yaml.safe_load(
            (project_root / SECTIONS / "system.yaml").read_text(encoding="utf-8")
        )
        assert system["scaffold"]["template_version"] == __version__
        assert (project_root / ".claude" / "settings.json").is_file()
        assert (project_root / ".gitignore").is_file()

    def test_rerun_is_up_to_date(self, project_root, capsys):
        _cli(project_root, "update", "--yes")
        capsys.readouterr()

        assert _cli(project_root, "update", "--yes") == 0
        assert "up-to-date" in capsys.readouterr().out

    def test_force_json(self, project_root, capsys):
        _cli(project_root, "update", "--yes")
        capsys.readouterr()

        assert _cli(project_root, "update", "--yes", "--force", "--json") == 0

        data = json.loads(capsys.readouterr().out)
        assert data["succeeded"] is True
        assert data["final_phase"] == "done"
        assert data["backup_dir"] is not None
        assert {r["method"] for r in data["restored"]} == {"three_way"}

    def test_invalid_keep_backups(self, project_root, capsys):
        assert _cli(project_root, "update", "--yes", "--keep-backups", "0") == 1
        assert "Error:" in capsys.readouterr().err

    def test_custom_templates(self, project_root, tmp_path, write, capsys):
        templates = tmp_path / "templates"
        write(templates, "dot_scaffold/config/sections/system.yaml.tmpl",
              'scaffold:\n  template_version: "{{ version }}"\n')
        write(templates, "CLAUDE.md", "## Custom\n")

        rc = main(
            [
                "--project-root", str(project_root),
                "--templates", str(templates),
                "--template-version", "9.9.9",
                "update", "--yes",
            ]
        )

        assert rc == 0
        assert (project_root / "CLAUDE.md").read_text(encoding="utf-8") == "## Custom\n"
        assert "9.9.9" in (project_root / SECTIONS / "system.yaml").read_text(encoding="utf-8")


class TestAnalyze:
    def test_text(self, project_root, capsys):
        assert _cli(project_root, "analyze") == 0
        out = capsys.readouterr().out
        assert "CLAUDE.md" in out
        assert "SectionMerge" in out
        assert ".scaffold/config" not in out

    def test_json(self, project_root, capsys):
        assert _cli(project_root, "analyze", "--json") == 0
        data = json.loads(capsys.readouterr().out)
        paths = {f["path"] for f in data["files"]}
        assert {"CLAUDE.md", ".claude/settings.json", ".gitignore"} <= paths
        assert data["safe_to_merge"] is False


class TestBackupCommands:
    def _two_syncs(self, project_root, capsys):
        _cli(project_root, "update", "--yes")
        _cli(project_root, "update", "--yes", "--force")
        capsys.readouterr()

    def test_backups_empty(self, project_root, capsys):
        assert _cli(project_root, "backups") == 0
        assert "No backups found." in capsys.readouterr().out

    def test_backups_lists(self, project_root, capsys):
        self._two_syncs(project_root, capsys)
        assert _cli(project_root, "backups") == 0
        out = capsys.readouterr().out
        assert "files" in out
        assert len(out.strip().splitlines()) == 1

    def test_restore(self, project_root, capsys):
        self._two_syncs(project_root, capsys)
        backup = next((project_root / ".scaffold-backups").iterdir()).name

        assert _cli(project_root, "restore", backup) == 0

        out = capsys.readouterr().out
        assert f"from {backup}" in out
        assert "three_way" in out

    def test_restore_unknown_backup(self, project_root, capsys):
        assert _cli(project_root, "restore", "20000101_000000") == 1
        assert "Error:" in capsys.readouterr().err

    def test_rotate(self, project_root, capsys):
        self._two_syncs(project_root, capsys)
        assert _cli(project_root, "rotate", "--keep", "0") == 0
        assert "Deleted 1 old backups, keeping 0" in capsys.readouterr().out
        assert list((project_root / ".scaffold-backups").iterdir()) == []


class TestLoggingOptions:
    @patch("scaffold_sync.cli.setup_logging")
    def test_defaults_log_text_to_stderr(self, mock_setup, project_root):
        _cli(project_root, "backups")
        kwargs = mock_setup.call_args[1]
        assert kwargs["mode"] == "cli"
        assert kwargs["debug_format"] == "text"

    @patch("scaffold_sync.cli.setup_logging")
    def test_quiet_json_logs_to_file_only(self, mock_setup, project_root, tmp_path):
        log_file = str(tmp_path / "sync.log")
        _cli(project_root, "--quiet", "--log-format", "json", "--log-file", log_file, "backups")
        kwargs = mock_setup.call_args[1]
        assert kwargs["mode"] == "file"
        assert kwargs["debug_format"] == "json"
        assert kwargs["log_file"] == log_file

    def test_unknown_log_format_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-format", "xml", "backups"])
