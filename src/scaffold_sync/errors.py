"""Exception hierarchy for template synchronization.

Every error carries the operation that failed and, where one exists, the
project path involved, so a fatal error can be traced back to the file
that needs manual attention.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for all synchronization failures.

    Args:
        message: Human-readable description of the failure.
        operation: Name of the operation that failed (e.g. ``"backup"``).
        path: Project path involved in the failure, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        path: str | None = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.path = path
        super().__init__(self._format())

    def _format(self) -> str:
        prefix = ""
        if self.operation:
            prefix = f"{self.operation} failed"
            if self.path:
                prefix += f" for {self.path}"
            prefix += ": "
        elif self.path:
            prefix = f"{self.path}: "
        return f"{prefix}{self.message}"


class ConfigNotADirectoryError(SyncError):
    """Raised when the config path exists but is not a directory."""


class CopyFailureError(SyncError):
    """Raised when a snapshot cannot be written (partial backup removed)."""


class MergeParseError(SyncError):
    """Raised when structured content cannot be parsed for merging."""


class DeployFailureError(SyncError):
    """Raised when template deployment cannot complete."""


class CleanFailureError(SyncError):
    """Raised when a managed path cannot be removed."""


class VersionReadError(SyncError):
    """Raised when the project template version cannot be read."""


class BackupIncompleteError(SyncError):
    """Raised when a backup directory has no valid metadata sidecar."""


class TemplateRenderError(SyncError):
    """Raised when a ``.tmpl`` entry fails to render."""


class PathTraversalError(SyncError):
    """Raised when a template path would escape the project root."""


class ConfirmationError(SyncError):
    """Raised when the confirmation prompt cannot obtain an answer."""
