"""Jinja2 rendering of ``.tmpl`` template entries.

Rendering is strict: a variable missing from the context is an error,
never an empty string, so a half-rendered config file cannot be deployed.
"""

from __future__ import annotations

import json
import logging
import platform
from pathlib import Path

import jinja2
from pydantic import BaseModel

from scaffold_sync.errors import TemplateRenderError

logger = logging.getLogger(__name__)


class TemplateContext(BaseModel):
    """Variables available to templates.

    Attributes:
        version: Template version being deployed.
        project_name: Name of the project (defaults to the directory name).
        project_root: Absolute project path, POSIX separators.
        platform: ``linux``, ``darwin`` or ``windows``.
        home_dir: The user's home directory.
        user_name: Optional display name.
        conversation_language: Language code written into config sections.
    """

    version: str
    project_name: str
    project_root: str
    platform: str
    home_dir: str
    user_name: str = ""
    conversation_language: str = "en"

    model_config = {"frozen": True}

    @classmethod
    def for_project(cls, project_root: Path, version: str, **overrides) -> TemplateContext:
        root = project_root.resolve()
        values = {
            "version": version,
            "project_name": root.name,
            "project_root": root.as_posix(),
            "platform": platform.system().lower(),
            "home_dir": Path.home().as_posix(),
        }
        values.update(overrides)
        return cls(**values)


def json_escape(value: object) -> str:
    """Escape *value* for embedding inside a JSON string literal."""
    return json.dumps(str(value))[1:-1]


def posix_path(value: object) -> str:
    return str(value).replace("\\", "/")


class TemplateRenderer:
    """Render template text with a strict Jinja2 environment."""

    def __init__(self) -> None:
        self._env = jinja2.Environment(
            loader=jinja2.BaseLoader(),
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self._env.filters["json_escape"] = json_escape
        self._env.filters["posix_path"] = posix_path

    def render(self, name: str, text: str, context: TemplateContext) -> str:
        """Render *text* (the content of entry *name*) with *context*.

        Raises:
            TemplateRenderError: On syntax errors or undefined variables.
        """
        try:
            template = self._env.from_string(text)
            return template.render(**context.model_dump())
        except jinja2.TemplateError as exc:
            raise TemplateRenderError(str(exc), operation="render", path=name) from exc
