"""Timestamped snapshots of the config subtree and merge-based restore.

A backup lives in ``<backups_dir>/<YYYYMMDD_HHMMSS>/`` and mirrors the
config directory (``sections/*.yaml`` ends up at ``<backup>/sections/``).
Next to the copied files sit:

* ``.template-defaults/sections/`` -- the raw template config sections
  the project was deployed from, used as the merge base on restore.
* ``backup_metadata.json`` -- written last and atomically.  A backup
  directory without a valid sidecar is incomplete and may be discarded.

Any failure while copying or writing the sidecar removes the partial
directory, so either a complete backup exists or none does.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import ValidationError

from scaffold_sync.errors import (
    BackupIncompleteError,
    ConfigNotADirectoryError,
    CopyFailureError,
    MergeParseError,
)
from scaffold_sync.file_handler import (
    atomic_write_text,
    read_file_with_encoding,
    write_file,
)

from .layout import SECTIONS_SUBDIR, ProjectLayout, display_path, posix_relative
from .merger import merge_yaml_2way, merge_yaml_3way
from .models import BackupMetadata, RestoredFile, RestoreMethod

logger = logging.getLogger(__name__)

METADATA_FILE = "backup_metadata.json"
TEMPLATE_DEFAULTS_DIR = ".template-defaults"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
TIMESTAMP_PATTERN = re.compile(r"^\d{8}_\d{6}$")
YAML_SUFFIXES = (".yaml", ".yml")


def _raise(exc: OSError) -> None:
    raise exc


class BackupManager:
    """Create, restore, and rotate config backups for one project layout.

    Args:
        layout: Project layout naming the config and backups directories.
        excluded_dirs: Config-relative directories left out of snapshots.
        clock: Returns the current local time; injectable for tests.
    """

    def __init__(
        self,
        layout: ProjectLayout,
        excluded_dirs: Iterable[str] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._layout = layout
        self._excluded_dirs = [d.strip("/") for d in excluded_dirs if d.strip("/")]
        self._clock = clock or datetime.now

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def backups_root(self, project_root: Path) -> Path:
        return self._layout.resolve(project_root, self._layout.backups_dir)

    def _new_backup_dir(self, project_root: Path) -> tuple[str, Path]:
        root = self.backups_root(project_root)
        moment = self._clock()
        timestamp = moment.strftime(TIMESTAMP_FORMAT)
        while (root / timestamp).exists():
            moment += timedelta(seconds=1)
            timestamp = moment.strftime(TIMESTAMP_FORMAT)
        backup_dir = root / timestamp
        backup_dir.mkdir(parents=True)
        return timestamp, backup_dir

    def _is_excluded(self, rel: str) -> bool:
        return any(rel == d or rel.startswith(d + "/") for d in self._excluded_dirs)

    def _copy_config(
        self, config_dir: Path, backup_dir: Path
    ) -> tuple[list[str], list[str]]:
        backed_up: list[str] = []
        excluded: list[str] = []
        config_prefix = self._layout.config_dir.strip("/")

        for dirpath, dirnames, filenames in os.walk(config_dir, onerror=_raise):
            current = Path(dirpath)
            for name in sorted(dirnames):
                rel = posix_relative(current / name, config_dir)
                if self._is_excluded(rel):
                    excluded.append(rel)
                    dirnames.remove(name)
            dirnames.sort()

            for name in sorted(filenames):
                source = current / name
                rel = posix_relative(source, config_dir)
                if self._is_excluded(rel):
                    excluded.append(rel)
                    continue
                destination = backup_dir.joinpath(*rel.split("/"))
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)
                backed_up.append(f"{config_prefix}/{rel}")

        return backed_up, excluded

    def save_template_defaults(self, template_source, dest_dir: Path) -> int:
        """Extract raw config-section templates into ``dest_dir/sections``.

        Only entries directly under the layout's sections directory are
        taken.  ``.tmpl`` suffixes are stripped but content is not
        rendered.  Unreadable entries are skipped with a warning.

        Returns:
            Number of section files written.
        """
        prefix = f"{self._layout.sections_dir}/"
        sections_dest = dest_dir / SECTIONS_SUBDIR
        sections_dest.mkdir(parents=True, exist_ok=True)

        written = 0
        for entry in template_source.list_entries():
            if not entry.path.startswith(prefix):
                continue
            name = entry.path[len(prefix):]
            if not name or "/" in name:
                continue
            try:
                data = template_source.read_content(entry.path)
                write_file(sections_dest / display_path(name), data)
            except (OSError, KeyError) as exc:
                logger.warning("Skipping template default %s: %s", entry.path, exc)
                continue
            written += 1
        return written

    def snapshot(self, project_root: Path, template_source=None) -> Path | None:
        """Back up the config subtree of *project_root*.

        Args:
            project_root: Project directory.
            template_source: Template source whose config sections are
                saved as the merge base.  Optional.

        Returns:
            The backup directory, or ``None`` when there is no config
            directory to back up.

        Raises:
            ConfigNotADirectoryError: If the config path is not a directory.
            CopyFailureError: If a config directory cannot be listed, or a
                file or the sidecar cannot be written.
        """
        config_dir = self._layout.resolve(project_root, self._layout.config_dir)
        try:
            is_dir = config_dir.is_dir()
            exists = is_dir or config_dir.exists()
        except OSError as exc:
            raise CopyFailureError(
                str(exc), operation="backup", path=self._layout.config_dir
            ) from exc
        if not exists:
            logger.info("No config directory at %s, nothing to back up", config_dir)
            return None
        if not is_dir:
            raise ConfigNotADirectoryError(
                "config path is not a directory",
                operation="backup",
                path=self._layout.config_dir,
            )

        try:
            timestamp, backup_dir = self._new_backup_dir(project_root)
        except OSError as exc:
            raise CopyFailureError(
                f"cannot create backup directory: {exc}",
                operation="backup",
                path=self._layout.backups_dir,
            ) from exc

        try:
            backed_up, excluded = self._copy_config(config_dir, backup_dir)

            defaults_dir: str | None = None
            if template_source is not None:
                try:
                    self.save_template_defaults(
                        template_source, backup_dir / TEMPLATE_DEFAULTS_DIR
                    )
                    defaults_dir = TEMPLATE_DEFAULTS_DIR
                except OSError as exc:
                    logger.warning(
                        "Could not save template defaults, restore will use "
                        "two-way merge: %s",
                        exc,
                    )

            metadata = BackupMetadata(
                timestamp=timestamp,
                backed_up_items=backed_up,
                excluded_items=excluded,
                excluded_dirs=list(self._excluded_dirs),
                project_root=str(project_root),
                template_defaults_dir=defaults_dir,
            )
            atomic_write_text(
                backup_dir / METADATA_FILE,
                metadata.model_dump_json(indent=2, exclude_none=True),
            )
        except OSError as exc:
            shutil.rmtree(backup_dir, ignore_errors=True)
            raise CopyFailureError(
                str(exc), operation="backup", path=self._layout.config_dir
            ) from exc

        logger.info("Backed up %d config files to %s", len(backed_up), backup_dir)
        return backup_dir

    # ------------------------------------------------------------------
    # Metadata and listing
    # ------------------------------------------------------------------

    def load_metadata(self, backup_dir: Path) -> BackupMetadata:
        """Parse the sidecar of *backup_dir*.

        Raises:
            BackupIncompleteError: If the sidecar is missing or invalid.
        """
        path = backup_dir / METADATA_FILE
        try:
            return BackupMetadata.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as exc:
            raise BackupIncompleteError(
                str(exc), operation="load metadata", path=str(backup_dir)
            ) from exc

    def is_complete(self, backup_dir: Path) -> bool:
        try:
            self.load_metadata(backup_dir)
        except BackupIncompleteError:
            return False
        return True

    def _timestamp_dirs(self, project_root: Path) -> list[Path]:
        root = self.backups_root(project_root)
        try:
            children = list(root.iterdir())
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning("Cannot list backups in %s: %s", root, exc)
            return []
        return sorted(
            (p for p in children if p.is_dir() and TIMESTAMP_PATTERN.match(p.name)),
            key=lambda p: p.name,
        )

    def list_backups(self, project_root: Path) -> list[Path]:
        """Return complete backups, oldest first."""
        return [d for d in self._timestamp_dirs(project_root) if self.is_complete(d)]

    def discard_incomplete(self, project_root: Path) -> int:
        """Remove timestamp directories without a valid sidecar."""
        removed = 0
        for backup_dir in self._timestamp_dirs(project_root):
            if self.is_complete(backup_dir):
                continue
            try:
                shutil.rmtree(backup_dir)
            except OSError as exc:
                logger.warning("Failed to discard incomplete backup %s: %s", backup_dir, exc)
                continue
            logger.info("Discarded incomplete backup %s", backup_dir.name)
            removed += 1
        return removed

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def _restore_section(
        self, backup_file: Path, rel: str, target: Path, defaults_dir: Path
    ) -> RestoredFile:
        old_text = read_file_with_encoding(backup_file)

        if not target.exists():
            write_file(target, backup_file.read_bytes())
            return RestoredFile(path=rel, method=RestoreMethod.ORPHAN)

        new_text = read_file_with_encoding(target)
        base_file = defaults_dir.joinpath(*rel.split("/"))
        if base_file.is_file():
            try:
                merged = merge_yaml_3way(
                    new_text, old_text, read_file_with_encoding(base_file)
                )
            except MergeParseError as exc:
                logger.warning(
                    "Three-way merge failed for %s, falling back to two-way: %s",
                    rel,
                    exc,
                )
            else:
                write_file(target, merged)
                return RestoredFile(path=rel, method=RestoreMethod.THREE_WAY)

        try:
            merged = merge_yaml_2way(new_text, old_text)
        except MergeParseError as exc:
            logger.warning("Merge failed for %s, restoring backup: %s", rel, exc)
            write_file(target, backup_file.read_bytes())
            return RestoredFile(
                path=rel,
                method=RestoreMethod.RAW_FALLBACK,
                warning=f"merge failed, backup content restored: {exc.message}",
            )
        write_file(target, merged)
        return RestoredFile(path=rel, method=RestoreMethod.TWO_WAY)

    def restore(self, project_root: Path, backup_dir: Path) -> list[RestoredFile]:
        """Merge backed-up config sections into the freshly deployed config.

        Per-file I/O errors are recorded as ``failed`` entries and the walk
        continues.  Backups without a ``sections/`` directory are restored
        with ``restore_legacy``.
        """
        sections_backup = backup_dir / SECTIONS_SUBDIR
        if not sections_backup.is_dir():
            return self.restore_legacy(project_root, backup_dir)

        sections_target = self._layout.resolve(project_root, self._layout.sections_dir)
        defaults_dir = backup_dir / TEMPLATE_DEFAULTS_DIR / SECTIONS_SUBDIR

        results: list[RestoredFile] = []
        for dirpath, dirnames, filenames in os.walk(sections_backup):
            dirnames.sort()
            for name in sorted(filenames):
                if not name.endswith(YAML_SUFFIXES):
                    continue
                backup_file = Path(dirpath) / name
                rel = posix_relative(backup_file, sections_backup)
                target = sections_target.joinpath(*rel.split("/"))
                try:
                    results.append(
                        self._restore_section(backup_file, rel, target, defaults_dir)
                    )
                except OSError as exc:
                    logger.error("Failed to restore %s: %s", rel, exc)
                    results.append(
                        RestoredFile(
                            path=rel, method=RestoreMethod.FAILED, warning=str(exc)
                        )
                    )
        return results

    def restore_legacy(self, project_root: Path, backup_dir: Path) -> list[RestoredFile]:
        """Restore a backup whose files sit at the backup root."""
        config_dir = self._layout.resolve(project_root, self._layout.config_dir)
        results: list[RestoredFile] = []

        for dirpath, dirnames, filenames in os.walk(backup_dir):
            current = Path(dirpath)
            if current == backup_dir and TEMPLATE_DEFAULTS_DIR in dirnames:
                dirnames.remove(TEMPLATE_DEFAULTS_DIR)
            dirnames.sort()
            for name in sorted(filenames):
                if current == backup_dir and name == METADATA_FILE:
                    continue
                backup_file = current / name
                rel = posix_relative(backup_file, backup_dir)
                target = config_dir.joinpath(*rel.split("/"))
                try:
                    if not target.exists():
                        write_file(target, backup_file.read_bytes())
                        results.append(RestoredFile(path=rel, method=RestoreMethod.ORPHAN))
                        continue
                    try:
                        merged = merge_yaml_2way(
                            read_file_with_encoding(target),
                            read_file_with_encoding(backup_file),
                        )
                    except MergeParseError as exc:
                        logger.warning("Merge failed for %s, restoring backup: %s", rel, exc)
                        write_file(target, backup_file.read_bytes())
                        results.append(
                            RestoredFile(
                                path=rel,
                                method=RestoreMethod.RAW_FALLBACK,
                                warning=f"merge failed, backup content restored: {exc.message}",
                            )
                        )
                        continue
                    write_file(target, merged)
                    results.append(RestoredFile(path=rel, method=RestoreMethod.TWO_WAY))
                except OSError as exc:
                    logger.error("Failed to restore %s: %s", rel, exc)
                    results.append(
                        RestoredFile(path=rel, method=RestoreMethod.FAILED, warning=str(exc))
                    )
        return results

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def rotate(self, project_root: Path, keep_count: int) -> int:
        """Delete all but the newest *keep_count* timestamped backups.

        Returns:
            Number of backups deleted.  Deletion errors are logged and
            skipped.

        Raises:
            ValueError: If *keep_count* is negative.
        """
        if keep_count < 0:
            raise ValueError(f"keep_count must be >= 0, got {keep_count}")

        backups = self._timestamp_dirs(project_root)
        if len(backups) <= keep_count:
            return 0

        stale = backups[: len(backups) - keep_count]
        deleted = 0
        for backup_dir in stale:
            try:
                shutil.rmtree(backup_dir)
            except OSError as exc:
                logger.warning("Failed to delete backup %s: %s", backup_dir.name, exc)
                continue
            deleted += 1
        if deleted:
            logger.info("Deleted %d old backups, keeping %d", deleted, keep_count)
        return deleted
