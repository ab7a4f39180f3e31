"""Junction tables for many-to-many relations.

The junction of two entities is named after both of them in alphabetical
snake-case order (``Post`` + ``Tag`` -> ``post_tag``), so it is the same
whichever side declares the relation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from stackgen.scaffolder.layout import MODELS_INIT, junction_files, name_context
from stackgen.scaffolder.markers import MARKERS, inject_into_file
from stackgen.scaffolder.templates import TemplateRenderer
from stackgen.updater.manifest import FileCategory, ManifestTracker
from stackgen.utils import pascal_case, print_action, snake_case


def junction_name(a: str, b: str) -> str:
    """Order-independent junction name: ``junction_name("Tag", "Post") == "post_tag"``."""
    return "_".join(sorted((snake_case(a), snake_case(b))))


class JunctionDefinition(BaseModel):
    """The two participants of a junction, ``entity_a`` first alphabetically."""
    model_config = ConfigDict(frozen=True)

    entity_a: str
    entity_b: str

    @classmethod
    def between(cls, first: str, second: str) -> "JunctionDefinition":
        a, b = sorted((pascal_case(first), pascal_case(second)), key=snake_case)
        return cls(entity_a=a, entity_b=b)

    @property
    def name(self) -> str:
        return junction_name(self.entity_a, self.entity_b)

    @property
    def pascal(self) -> str:
        return pascal_case(self.name)

    def context(self) -> dict[str, Any]:
        a = name_context(self.entity_a)
        b = name_context(self.entity_b)
        return {
            "name": self.name,
            "pascal": self.pascal,
            "entity_a": a,
            "entity_b": b,
            "revision": f"create_{self.name}_table",
            "depends_on": [f"create_{a['snake']}_table", f"create_{b['snake']}_table"],
        }


def generate_junction(
    root: Path,
    renderer: TemplateRenderer,
    tracker: ManifestTracker,
    junction: JunctionDefinition,
    context: dict[str, Any] | None = None,
) -> list[str]:
    """Write the junction model and migration if missing and register the model.

    Existing junction files are never rewritten.  Returns the project-relative
    paths that were written.
    """
    ctx = {**(context or {}), "junction": junction.context()}
    model_path, migration_path = junction_files(junction.name)
    written: list[str] = []

    for rel_path, template in (
        (model_path, "junction/model.py.j2"),
        (migration_path, "junction/migration.py.j2"),
    ):
        if (root / rel_path).exists():
            continue
        tracker.write(
            rel_path,
            renderer.render(template, ctx),
            category=FileCategory.JUNCTION,
            template=template,
            entity=junction.pascal,
        )
        print_action("create", rel_path)
        written.append(rel_path)

    def write_aggregator(path: Path, content: str) -> None:
        tracker.write(path, content, category=FileCategory.MARKER)

    import_line = f"from app.models.{junction.name} import {junction.pascal}"
    if inject_into_file(root / MODELS_INIT, MARKERS["MODELS"], import_line, write=write_aggregator):
        print_action("inject", MODELS_INIT, "MODELS")
        written.append(MODELS_INIT)
    return written
