"""Template sources.

A template source is a read-only tree of template entries plus the
version it was published as.  Entry paths are project-relative POSIX
paths; entries ending in ``.tmpl`` are rendered before deployment.

Packaged trees cannot reliably ship dotfiles, so on disk a path
component starting with ``dot_`` stands for one starting with ``.``
(``dot_claude/settings.json.tmpl`` -> ``.claude/settings.json.tmpl``).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from scaffold_sync import __version__

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".tmpl"
DOT_PREFIX = "dot_"
BUNDLE_DIR = Path(__file__).parent / "bundle"


class TemplateEntry(BaseModel):
    """One file in a template tree.

    Attributes:
        path: Project-relative POSIX path, ``.tmpl`` suffix included.
    """

    path: str

    model_config = {"frozen": True}

    @property
    def is_template(self) -> bool:
        return self.path.endswith(TEMPLATE_SUFFIX)

    @property
    def target(self) -> str:
        """Project-relative path the entry deploys to."""
        return self.path.removesuffix(TEMPLATE_SUFFIX)


@runtime_checkable
class TemplateSource(Protocol):
    """Read-only access to a versioned template tree."""

    @property
    def version(self) -> str: ...

    def list_entries(self) -> list[TemplateEntry]: ...

    def read_content(self, path: str) -> bytes: ...


def _map_component(name: str) -> str:
    if name.startswith(DOT_PREFIX):
        return "." + name[len(DOT_PREFIX):]
    return name


class DirectoryTemplateSource:
    """Template tree stored in a directory.

    Args:
        root: Directory holding the tree.
        version: Template version string.
    """

    def __init__(self, root: Path, version: str) -> None:
        self._root = Path(root)
        self._version = version
        self._files: dict[str, Path] | None = None

    @property
    def version(self) -> str:
        return self._version

    @property
    def root(self) -> Path:
        return self._root

    def _index(self) -> dict[str, Path]:
        if self._files is None:
            files: dict[str, Path] = {}
            for file_path in sorted(self._root.rglob("*")):
                if not file_path.is_file() or file_path.name == "__init__.py":
                    continue
                if "__pycache__" in file_path.parts:
                    continue
                parts = file_path.relative_to(self._root).parts
                files["/".join(_map_component(p) for p in parts)] = file_path
            self._files = files
            logger.debug("Indexed %d template entries under %s", len(files), self._root)
        return self._files

    def list_entries(self) -> list[TemplateEntry]:
        return [TemplateEntry(path=p) for p in self._index()]

    def read_content(self, path: str) -> bytes:
        """Return the raw bytes of entry *path*.

        Raises:
            KeyError: If the entry does not exist.
        """
        return self._index()[path].read_bytes()


class InMemoryTemplateSource:
    """Template tree held in a mapping of entry path to content."""

    def __init__(self, files: Mapping[str, str | bytes], version: str) -> None:
        self._files = {
            path: content.encode("utf-8") if isinstance(content, str) else content
            for path, content in files.items()
        }
        self._version = version

    @property
    def version(self) -> str:
        return self._version

    def list_entries(self) -> list[TemplateEntry]:
        return [TemplateEntry(path=p) for p in sorted(self._files)]

    def read_content(self, path: str) -> bytes:
        return self._files[path]


def bundled_source() -> DirectoryTemplateSource:
    """Return the template tree shipped with this package."""
    return DirectoryTemplateSource(BUNDLE_DIR, __version__)


__all__ = [
    "DirectoryTemplateSource",
    "InMemoryTemplateSource",
    "TemplateEntry",
    "TemplateSource",
    "bundled_source",
]
