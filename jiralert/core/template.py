"""Jinja2 rendering of configured strings against a notification.

Configured strings (summary, description, project, custom fields, ...) are
Jinja2 templates rendered with the notification's fields as variables:

    summary: '[{{ status | upper }}] {{ group_labels.alertname }}'

When the configuration names a template library file, its macros are
available under ``tmpl``, bound to the same notification:

    summary: '{{ tmpl.summary() }}'
"""

import os
import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template, TemplateError

from jiralert.core.errors import RenderError
from jiralert.schemas import Notification


def _re_replace_all(value: str, pattern: str, repl: str) -> str:
    return re.sub(pattern, repl, str(value))


def _match(value: str, pattern: str) -> bool:
    return re.search(pattern, str(value)) is not None


def _string_slice(value: Any) -> list:
    if isinstance(value, list | tuple):
        return list(value)
    return [value]


class Renderer:
    """Renders configured template strings.

    Args:
        library_path: Optional Jinja2 file whose macros are exposed as ``tmpl``.

    Raises:
        RenderError: If the library file cannot be loaded.
    """

    def __init__(self, library_path: str | Path | None = None):
        loader = None
        if library_path is not None:
            library_path = Path(library_path)
            loader = FileSystemLoader(str(library_path.parent))

        self._env = Environment(
            loader=loader,
            undefined=StrictUndefined,  # undefined fields are errors, not empty strings
            autoescape=False,
            keep_trailing_newline=False,
        )
        self._env.filters["re_replace_all"] = _re_replace_all
        self._env.filters["string_slice"] = _string_slice
        self._env.tests["match"] = _match
        self._env.globals["getenv"] = os.environ.get

        self._library: Template | None = None
        if library_path is not None:
            try:
                self._library = self._env.get_template(library_path.name)
            except TemplateError as e:
                raise RenderError(f"load template library {library_path}: {e}") from e

    def render(self, source: str, data: Notification, what: str = "template") -> str:
        """Render one template string against a notification.

        Raises:
            RenderError: On syntax errors or references to undefined fields.
        """
        if not source:
            return ""
        context = data.template_context()
        try:
            if self._library is not None:
                context["tmpl"] = self._library.make_module(context)
            return self._env.from_string(source).render(context)
        except TemplateError as e:
            raise RenderError(f"render {what}: {e}") from e
