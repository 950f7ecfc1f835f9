"""Deployment manifest and baseline store.

The manifest (``<state_dir>/manifest.json``) records, for every path the
deployer has written, where its content came from and the hash of the
template content deployed there.  The baseline store
(``<state_dir>/baselines/<path>``) keeps the template content last
deployed to each user-owned file, which is the common ancestor for the
next three-way file merge.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Content hashing** -- ``content_hash()`` normalises content (BOM,
  line-endings, trailing whitespace) before SHA-256 so hashes are stable
  across platforms.
* **Dict-based state** -- the manifest is a plain ``dict`` so the deployer
  can mutate it during a run and persist once at the end.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from scaffold_sync.file_handler import (
    atomic_write_text,
    read_file_with_encoding,
    validate_relative_path,
)

from .layout import BASELINES_SUBDIR, MANIFEST_FILE

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1


class Provenance(str, Enum):
    """Origin of a deployed file's current content."""

    TEMPLATE_MANAGED = "template_managed"
    USER_MODIFIED = "user_modified"
    USER_CREATED = "user_created"


class Manifest:
    """Load, save, and query the deployment manifest.

    Args:
        state_dir: Absolute path of the tool state directory
            (typically ``<project>/.scaffold``).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def path(self) -> Path:
        return self._state_dir / MANIFEST_FILE

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load the manifest from disk.

        Returns:
            The manifest dict.  A missing or corrupt file yields an empty
            manifest; corruption is logged.
        """
        empty = {
            "version": MANIFEST_VERSION,
            "template_version": None,
            "last_deploy": None,
            "entries": {},
        }
        if not self.path.exists():
            return empty
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable manifest %s: %s", self.path, exc)
            return empty
        if not isinstance(data, dict):
            logger.warning("Ignoring manifest %s: root is not an object", self.path)
            return empty
        data.setdefault("entries", {})
        return data

    def save(self, state: dict, template_version: str | None = None) -> None:
        """Persist the manifest atomically, stamping ``last_deploy``."""
        state["last_deploy"] = datetime.now(timezone.utc).isoformat()
        if template_version is not None:
            state["template_version"] = template_version
        atomic_write_text(self.path, json.dumps(state, indent=2) + "\n")

    # ------------------------------------------------------------------
    # Entry helpers
    # ------------------------------------------------------------------

    def get_entry(self, state: dict, rel_path: str) -> dict | None:
        """Return the entry for *rel_path*, or ``None`` if absent."""
        return state.get("entries", {}).get(rel_path)

    def track(
        self,
        state: dict,
        rel_path: str,
        provenance: Provenance,
        template_hash: str,
    ) -> None:
        """Upsert the entry for *rel_path*.  Mutates *state* in place."""
        state.setdefault("entries", {})[rel_path] = {
            "provenance": provenance.value,
            "template_hash": template_hash,
            "deployed_at": datetime.now(timezone.utc).isoformat(),
        }

    # ------------------------------------------------------------------
    # Content hashing
    # ------------------------------------------------------------------

    @staticmethod
    def content_hash(content: str) -> str:
        """Compute a normalised SHA-256 hex digest of *content*.

        Normalisation: strip a BOM, convert CRLF to LF, right-strip each
        line and drop trailing empty lines.
        """
        text = content.lstrip("\ufeff").replace("\r\n", "\n")
        lines = [line.rstrip() for line in text.split("\n")]
        while lines and lines[-1] == "":
            lines.pop()
        return hashlib.sha256("\n".join(lines).encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # Baselines
    # ------------------------------------------------------------------

    def _baseline_path(self, rel_path: str) -> Path:
        return validate_relative_path(self._state_dir / BASELINES_SUBDIR, rel_path)

    def read_baseline(self, rel_path: str) -> str | None:
        """Return the template content stored for *rel_path*, if any."""
        path = self._baseline_path(rel_path)
        if not path.is_file():
            return None
        return read_file_with_encoding(path)

    def write_baseline(self, rel_path: str, content: str) -> None:
        atomic_write_text(self._baseline_path(rel_path), content)
