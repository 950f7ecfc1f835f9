"""Deploy a template source into a project.

For every template entry the deployer:

1. Maps the entry to its target path and checks it stays inside the
   project root.
2. Renders ``.tmpl`` entries.
3. Writes managed and absent targets outright.
4. Reconciles existing user-owned targets: a file still identical to what
   was last deployed is overwritten; anything else goes through
   ``merge_file`` with the stored baseline.  Unparsable content is left
   untouched.
5. Records the result in the manifest and, for user-owned targets, stores
   the new template content as the next baseline.

Any error stops the deploy with ``DeployFailureError``.  The manifest is
saved either way so it reflects what was actually written.
"""

from __future__ import annotations

import logging
from pathlib import Path

from scaffold_sync.errors import (
    DeployFailureError,
    MergeParseError,
    PathTraversalError,
    TemplateRenderError,
)
from scaffold_sync.file_handler import (
    decode_bytes,
    read_file_with_encoding,
    validate_relative_path,
    write_file,
)
from scaffold_sync.sync.layout import ProjectLayout
from scaffold_sync.sync.manifest import Manifest, Provenance
from scaffold_sync.sync.models import DeployAction, DeployedFile
from scaffold_sync.sync.risk import determine_strategy
from scaffold_sync.sync.strategies import merge_file

from . import TemplateEntry, TemplateSource
from .renderer import TemplateContext, TemplateRenderer

logger = logging.getLogger(__name__)

EXECUTABLE_MODE = 0o755
FILE_MODE = 0o644


def file_mode(rel_path: str) -> int:
    return EXECUTABLE_MODE if rel_path.endswith(".sh") else FILE_MODE


class Deployer:
    """Write a template source into a project directory.

    Args:
        source: Template source to deploy.
        layout: Project layout (decides which targets are managed).
        renderer: Renderer for ``.tmpl`` entries.
    """

    def __init__(
        self,
        source: TemplateSource,
        layout: ProjectLayout,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.source = source
        self.layout = layout
        self.renderer = renderer or TemplateRenderer()
        self._managed = layout.managed_paths()

    def list_templates(self) -> list[str]:
        """Return the entry paths of the source, ``.tmpl`` suffixes included."""
        return [entry.path for entry in self.source.list_entries()]

    def extract_template(self, path: str) -> bytes:
        """Return the raw, unrendered content of entry *path*."""
        return self.source.read_content(path)

    def _content(self, entry: TemplateEntry, context: TemplateContext) -> bytes:
        raw = self.source.read_content(entry.path)
        if not entry.is_template:
            return raw
        rendered = self.renderer.render(entry.path, decode_bytes(raw), context)
        return rendered.encode("utf-8")

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def deploy(
        self,
        project_root: Path,
        manifest: Manifest,
        state: dict,
        context: TemplateContext,
    ) -> list[DeployedFile]:
        """Deploy every entry of the source into *project_root*.

        Args:
            project_root: Project directory.
            manifest: Manifest store for the project.
            state: Manifest dict loaded from *manifest*; mutated in place.
            context: Rendering context.

        Returns:
            One ``DeployedFile`` per entry, in source order.

        Raises:
            DeployFailureError: On the first render, path or write error.
        """
        deployed: list[DeployedFile] = []
        try:
            for entry in self.source.list_entries():
                rel = entry.target
                try:
                    deployed.append(
                        self._deploy_entry(project_root, entry, manifest, state, context)
                    )
                except (OSError, KeyError, TemplateRenderError, PathTraversalError) as exc:
                    raise DeployFailureError(
                        str(exc), operation="deploy", path=rel
                    ) from exc
        finally:
            try:
                manifest.save(state, template_version=self.source.version)
            except OSError as exc:
                logger.error("Failed to save manifest: %s", exc)

        logger.info("Deployed %d template files", len(deployed))
        return deployed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _deploy_entry(
        self,
        project_root: Path,
        entry: TemplateEntry,
        manifest: Manifest,
        state: dict,
        context: TemplateContext,
    ) -> DeployedFile:
        rel = entry.target
        dest = validate_relative_path(project_root, rel)
        content = self._content(entry, context)
        mode = file_mode(rel)
        text = decode_bytes(content)
        template_hash = Manifest.content_hash(text)

        if rel in self._managed:
            write_file(dest, content, mode)
            manifest.track(state, rel, Provenance.TEMPLATE_MANAGED, template_hash)
            return DeployedFile(path=rel, action=DeployAction.WRITTEN)

        result = self._reconcile(dest, rel, content, text, mode, manifest, state)
        manifest.write_baseline(rel, text)
        return result

    def _reconcile(
        self,
        dest: Path,
        rel: str,
        content: bytes,
        text: str,
        mode: int,
        manifest: Manifest,
        state: dict,
    ) -> DeployedFile:
        template_hash = Manifest.content_hash(text)

        if not dest.exists():
            write_file(dest, content, mode)
            manifest.track(state, rel, Provenance.TEMPLATE_MANAGED, template_hash)
            return DeployedFile(path=rel, action=DeployAction.WRITTEN)

        current = read_file_with_encoding(dest)
        current_hash = Manifest.content_hash(current)
        entry = manifest.get_entry(state, rel)
        if current_hash == template_hash or (
            entry is not None and entry.get("template_hash") == current_hash
        ):
            write_file(dest, content, mode)
            manifest.track(state, rel, Provenance.TEMPLATE_MANAGED, template_hash)
            return DeployedFile(path=rel, action=DeployAction.WRITTEN)

        strategy = determine_strategy(rel)
        provenance = Provenance.USER_MODIFIED if entry else Provenance.USER_CREATED
        try:
            result = merge_file(strategy, manifest.read_baseline(rel), current, text)
        except MergeParseError as exc:
            logger.warning("Preserving %s, cannot merge: %s", rel, exc)
            manifest.track(state, rel, provenance, template_hash)
            return DeployedFile(
                path=rel,
                action=DeployAction.PRESERVED,
                strategy=strategy,
                note=exc.message,
            )

        write_file(dest, result.content, mode)
        manifest.track(state, rel, provenance, template_hash)
        if result.has_conflict:
            logger.warning(
                "%s merged with %d conflicts (%s)",
                rel,
                len(result.conflicts),
                strategy.value,
            )
            return DeployedFile(
                path=rel,
                action=DeployAction.CONFLICT,
                strategy=strategy,
                note=", ".join(c.location for c in result.conflicts),
            )
        return DeployedFile(path=rel, action=DeployAction.MERGED, strategy=strategy)
