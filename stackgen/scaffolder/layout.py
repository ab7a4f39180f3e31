"""File layout of a generated project.

Central table of where every generated file lives and which template
renders it, so that the project generator, the entity generator, the
relation resolver and the update planner agree on paths.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, NamedTuple

from stackgen.config import ProjectConfig
from stackgen.scaffolder.markers import MARKERS, Marker
from stackgen.utils import pascal_case, pluralize, snake_case


# ---------------------------------------------------------------------------
# Project-level files
# ---------------------------------------------------------------------------

# Scaffold files are rendered once at project creation and afterwards only
# touched by ``stackgen update``.  Path -> template id.
SCAFFOLD_FILES: dict[str, str] = {
    "README.md": "project/README.md.j2",
    ".gitignore": "project/gitignore.j2",
    "backend/requirements.txt": "project/backend/requirements.txt.j2",
    "backend/.env.example": "project/backend/env.example.j2",
    "backend/app/__init__.py": "project/backend/app/package_init.py.j2",
    "backend/app/main.py": "project/backend/app/main.py.j2",
    "backend/app/config.py": "project/backend/app/config.py.j2",
    "backend/app/db.py": "project/backend/app/db.py.j2",
    "backend/app/pagination.py": "project/backend/app/pagination.py.j2",
    "backend/app/schemas/__init__.py": "project/backend/app/package_init.py.j2",
    "backend/app/handlers/__init__.py": "project/backend/app/package_init.py.j2",
    "backend/migrations/__init__.py": "project/backend/app/package_init.py.j2",
    "backend/migrations/versions/__init__.py": "project/backend/app/package_init.py.j2",
    "backend/migrations/run.py": "project/backend/migrations/run.py.j2",
    "frontend/package.json": "project/frontend/package.json.j2",
    "frontend/index.html": "project/frontend/index.html.j2",
    "frontend/tsconfig.json": "project/frontend/tsconfig.json.j2",
    "frontend/vite.config.ts": "project/frontend/vite.config.ts.j2",
    "frontend/src/main.tsx": "project/frontend/src/main.tsx.j2",
    "frontend/src/lib/api.ts": "project/frontend/src/lib/api.ts.j2",
}

# Aggregator files are shared by every entity and only ever grow through
# anchor injection.  Path -> template id.
MODELS_INIT = "backend/app/models/__init__.py"
ROUTES_INIT = "backend/app/routes/__init__.py"
APP_TSX = "frontend/src/App.tsx"

AGGREGATOR_FILES: dict[str, str] = {
    MODELS_INIT: "project/backend/app/models_init.py.j2",
    ROUTES_INIT: "project/backend/app/routes_init.py.j2",
    APP_TSX: "project/frontend/src/App.tsx.j2",
}

AGGREGATOR_MARKERS: dict[str, tuple[Marker, ...]] = {
    MODELS_INIT: (MARKERS["MODELS"],),
    ROUTES_INIT: (MARKERS["ROUTE_MODULES"], MARKERS["ROUTES"]),
    APP_TSX: (MARKERS["IMPORTS"], MARKERS["NAV_LINKS"], MARKERS["APP_ROUTES"]),
}


# ---------------------------------------------------------------------------
# Entity-level files
# ---------------------------------------------------------------------------


class EntityFiles(NamedTuple):
    """Project-relative paths of one entity's generated files."""

    model: str
    schema: str
    handlers: str
    routes: str
    migration: str
    types: str
    page: str


ENTITY_TEMPLATES: dict[str, str] = {
    "model": "entity/model.py.j2",
    "schema": "entity/schema.py.j2",
    "handlers": "entity/handlers.py.j2",
    "routes": "entity/routes.py.j2",
    "migration": "entity/migration.py.j2",
    "types": "entity/types.ts.j2",
    "page": "entity/Page.tsx.j2",
}

# Files whose anchors must exist before another entity may inject into them.
ENTITY_ANCHORS: dict[str, Marker] = {
    "model": MARKERS["RELATIONS"],
    "handlers": MARKERS["RELATION_HANDLERS"],
    "routes": MARKERS["RELATION_ROUTES"],
}


def entity_files(name: str) -> EntityFiles:
    snake = snake_case(name)
    pascal = pascal_case(name)
    return EntityFiles(
        model=f"backend/app/models/{snake}.py",
        schema=f"backend/app/schemas/{snake}.py",
        handlers=f"backend/app/handlers/{snake}.py",
        routes=f"backend/app/routes/{snake}.py",
        migration=f"backend/migrations/versions/create_{snake}_table.py",
        types=f"frontend/src/features/{snake}/types.ts",
        page=f"frontend/src/features/{snake}/{pascal}Page.tsx",
    )


def junction_files(junction: str) -> tuple[str, str]:
    """Return the ``(model, migration)`` paths of a junction table."""
    return (
        f"backend/app/models/{junction}.py",
        f"backend/migrations/versions/create_{junction}_table.py",
    )


def entity_exists(root: Path, name: str) -> bool:
    """An entity exists once its model file has been generated."""
    return (Path(root) / entity_files(name).model).is_file()


# ---------------------------------------------------------------------------
# Shared template context
# ---------------------------------------------------------------------------


def name_context(name: str) -> dict[str, str]:
    """Every casing form of an entity name, as used by the templates."""
    snake = snake_case(name)
    return {
        "name": pascal_case(name),
        "snake": snake,
        "pascal": pascal_case(name),
        "plural": pluralize(snake),
        "kebab_plural": pluralize(snake).replace("_", "-"),
        "id_param": f"{snake}_id",
        "item_path": f"/{{{snake}_id}}",
        "label": pluralize(snake).replace("_", " ").title(),
    }


def project_context(config: ProjectConfig) -> dict[str, Any]:
    """Context shared by every template rendered for *config*'s project."""
    return {
        "project_name": config.name,
        "description": config.description,
        "api_prefix": config.api_prefix,
        "markers": MARKERS,
    }
