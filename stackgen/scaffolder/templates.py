"""Jinja2 template rendering for project and entity scaffolding.

Provides the TemplateRenderer class which loads Jinja2 templates from the
``stackgen/scaffolder/templates/`` directory and renders them with
project- or entity-specific context data.  Rendering is a pure function of
template id and context; writing the result is the caller's job so that
custom-block preservation and manifest tracking can sit in between.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from stackgen.utils import camel_case, kebab_case, pascal_case, pluralize, snake_case


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for scaffolding.

    Templates are addressed by their path relative to the template directory
    (e.g. ``"entity/model.py.j2"``).  Undefined variables raise instead of
    rendering as empty strings, so a missing context key surfaces as an error
    rather than as silently broken generated code.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register custom filters
        self.env.filters["snake_case"] = snake_case
        self.env.filters["pascal_case"] = pascal_case
        self.env.filters["camel_case"] = camel_case
        self.env.filters["kebab_case"] = kebab_case
        self.env.filters["plural"] = pluralize

    # -- Rendering ---------------------------------------------------------

    def render(self, template_id: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_id: Path relative to the template directory (e.g.
                ``"backend/app/main.py.j2"``).
            context: Dictionary of variables available inside the template.

        Returns:
            The rendered template content as a string.
        """
        template = self.env.get_template(template_id)
        return template.render(**context)

    def render_macro(self, template_id: str, macro: str, **kwargs: Any) -> str:
        """Call one ``{% macro %}`` of a template and return its output.

        Relation snippets (one model line, one handler, one route line) are
        kept as macros of a single template per relation kind.
        """
        module = self.env.get_template(template_id).module
        return str(getattr(module, macro)(**kwargs))
