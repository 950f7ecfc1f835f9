"""Tests for scaffold_sync.config_loader: config discovery and loading."""

import textwrap

import pytest
import yaml

from scaffold_sync.config_loader import (
    CONFIG_ENV_VAR,
    _interpolate_recursive,
    discover_config_files,
    interpolate_env_vars,
    load_hierarchical_config,
)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point HOME at an empty directory and clear the explicit config var."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    return home


def _write_yaml(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("BACKUP_ROOT", ".backups")
        assert interpolate_env_vars("${BACKUP_ROOT}") == ".backups"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ:-fallback}") == "fallback"

    def test_default_used_when_empty(self, monkeypatch):
        monkeypatch.setenv("EMPTY_VAR", "")
        assert interpolate_env_vars("${EMPTY_VAR:-fallback}") == "fallback"

    def test_nested_interpolation(self, monkeypatch):
        monkeypatch.setenv("LOG_DIR", "/var/log")
        data = {"logging": {"file": "${LOG_DIR}/sync.log"}, "dirs": ["${LOG_DIR}", 3]}
        assert _interpolate_recursive(data) == {
            "logging": {"file": "/var/log/sync.log"},
            "dirs": ["/var/log", 3],
        }


# -------------------------------------------------------------------------
# Discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    def test_none_found(self, tmp_path):
        assert discover_config_files(tmp_path) == []

    def test_precedence_order(self, tmp_path, isolated_home, monkeypatch):
        explicit = _write_yaml(tmp_path / "explicit.yml", "a: 1\n")
        project_yml = _write_yaml(tmp_path / ".scaffold" / "sync.yml", "a: 2\n")
        project_yaml = _write_yaml(tmp_path / ".scaffold" / "sync.yaml", "a: 3\n")
        global_cfg = _write_yaml(
            isolated_home / ".config" / "scaffold_sync" / "config.yml", "a: 4\n"
        )
        monkeypatch.setenv(CONFIG_ENV_VAR, str(explicit))

        assert discover_config_files(tmp_path) == [
            explicit.resolve(),
            project_yml,
            project_yaml,
            global_cfg,
        ]


# -------------------------------------------------------------------------
# Hierarchical loading
# -------------------------------------------------------------------------


class TestLoadHierarchicalConfig:
    def test_zero_config(self, tmp_path):
        assert load_hierarchical_config(tmp_path) == {}

    def test_project_wins_over_global(self, tmp_path, isolated_home):
        _write_yaml(
            isolated_home / ".config" / "scaffold_sync" / "config.yml",
            """\
            backup:
              keep_count: 3
            logging:
              level: DEBUG
            """,
        )
        _write_yaml(
            tmp_path / ".scaffold" / "sync.yml",
            """\
            backup:
              keep_count: 10
            """,
        )

        merged = load_hierarchical_config(tmp_path)

        assert merged["backup"] == {"keep_count": 10}
        assert merged["logging"] == {"level": "DEBUG"}

    def test_env_vars_interpolated(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SYNC_LOG", "/tmp/x.log")
        _write_yaml(tmp_path / ".scaffold" / "sync.yml", "logging:\n  file: ${SYNC_LOG}\n")
        assert load_hierarchical_config(tmp_path)["logging"]["file"] == "/tmp/x.log"

    def test_non_dict_root_skipped(self, tmp_path, caplog):
        _write_yaml(tmp_path / ".scaffold" / "sync.yml", "- a\n- b\n")
        assert load_hierarchical_config(tmp_path) == {}
        assert "non-dict root" in caplog.text

    def test_invalid_yaml_raises(self, tmp_path):
        _write_yaml(tmp_path / ".scaffold" / "sync.yml", "a: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config(tmp_path)
