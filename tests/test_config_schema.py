"""Tests for the unified config schema.

Covers:
- Zero-config defaults
- Partial sections fill in defaults
- Range validation of backup.keep_count
- Frozen models
"""

import pytest
from pydantic import ValidationError

from scaffold_sync.config_schema import (
    BackupConfig,
    LoggingConfig,
    PathsConfig,
    UnifiedConfig,
    build_config,
)


class TestUnifiedConfig:
    def test_defaults(self):
        config = UnifiedConfig()
        assert config.paths.config_dir == ".scaffold/config"
        assert config.paths.namespace == "scaffold"
        assert config.backup.keep_count == 5
        assert config.backup.excluded_dirs == []
        assert config.sync.force is False
        assert config.logging.level == "INFO"
        assert config.logging.file is None

    def test_frozen(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.paths = PathsConfig(state_dir=".other")


class TestBackupConfig:
    @pytest.mark.parametrize("value", [0, 101, -1])
    def test_keep_count_out_of_range(self, value):
        with pytest.raises(ValidationError):
            BackupConfig(keep_count=value)

    @pytest.mark.parametrize("value", [1, 100])
    def test_keep_count_bounds(self, value):
        assert BackupConfig(keep_count=value).keep_count == value


class TestBuildConfig:
    def test_empty(self):
        assert build_config({}) == UnifiedConfig()

    def test_partial_sections(self):
        config = build_config(
            {
                "paths": {"agent_dir": ".agent"},
                "backup": {"keep_count": 10, "excluded_dirs": ["cache"]},
                "sync": {"auto_confirm": True},
                "logging": {"level": "DEBUG", "file": "/tmp/sync.log"},
            }
        )
        assert config.paths.agent_dir == ".agent"
        assert config.paths.state_dir == ".scaffold"
        assert config.backup.keep_count == 10
        assert config.backup.excluded_dirs == ["cache"]
        assert config.sync.auto_confirm is True
        assert config.sync.force is False
        assert config.logging == LoggingConfig(level="DEBUG", file="/tmp/sync.log")

    def test_invalid_value(self):
        with pytest.raises(ValidationError):
            build_config({"backup": {"keep_count": "many"}})
