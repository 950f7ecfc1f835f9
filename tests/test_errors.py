"""Tests for the sync exception hierarchy."""

import pytest

from scaffold_sync.errors import (
    BackupIncompleteError,
    CleanFailureError,
    ConfigNotADirectoryError,
    ConfirmationError,
    CopyFailureError,
    DeployFailureError,
    MergeParseError,
    PathTraversalError,
    SyncError,
    TemplateRenderError,
    VersionReadError,
)


class TestSyncError:
    def test_message_with_operation_and_path(self):
        err = SyncError("permission denied", operation="clean", path=".claude/settings.json")
        assert str(err) == "clean failed for .claude/settings.json: permission denied"
        assert err.operation == "clean"
        assert err.path == ".claude/settings.json"
        assert err.message == "permission denied"

    def test_message_with_path_only(self):
        assert str(SyncError("bad", path="x.yaml")) == "x.yaml: bad"

    def test_plain_message(self):
        assert str(SyncError("bad")) == "bad"

    @pytest.mark.parametrize(
        "cls",
        [
            BackupIncompleteError,
            CleanFailureError,
            ConfigNotADirectoryError,
            ConfirmationError,
            CopyFailureError,
            DeployFailureError,
            MergeParseError,
            PathTraversalError,
            TemplateRenderError,
            VersionReadError,
        ],
    )
    def test_subclasses_are_sync_errors(self, cls):
        with pytest.raises(SyncError):
            raise cls("boom", operation="test")
