"""Shared pytest fixtures for the stackgen test suite.

Provides reusable fixtures for:
- A template renderer over the packaged templates
- A freshly created project on disk (tmp_path based)
- Entity generators bound to that project
- Sample entity definitions used by the relation scenarios
"""

from __future__ import annotations

from pathlib import Path

import pytest

from stackgen.config import ProjectConfig
from stackgen.parser import EntityDefinition, parse_entity
from stackgen.scaffolder.generator import EntityGenerator, ProjectGenerator
from stackgen.scaffolder.templates import TemplateRenderer


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def renderer() -> TemplateRenderer:
    """Renderer over the templates shipped with the package."""
    return TemplateRenderer()


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@pytest.fixture
def project_root(tmp_path: Path, renderer: TemplateRenderer) -> Path:
    """A newly created ``blog`` project under a temporary directory."""
    config = ProjectConfig(name="blog", description="A test blog.")
    return ProjectGenerator(config, renderer).create_project(tmp_path)


@pytest.fixture
def project(project_root: Path) -> ProjectConfig:
    """Configuration of the ``blog`` project, loaded from disk."""
    return ProjectConfig.load(project_root)


@pytest.fixture
def generator(project: ProjectConfig, renderer: TemplateRenderer) -> EntityGenerator:
    """Entity generator bound to the ``blog`` project."""
    return EntityGenerator(project, renderer)


@pytest.fixture
def make_generator(renderer: TemplateRenderer):
    """Factory for a fresh ``EntityGenerator`` over any project root.

    Each call reloads the config, manifest and pending queue from disk, the
    way separate CLI invocations would.
    """

    def _make(root: Path) -> EntityGenerator:
        return EntityGenerator(ProjectConfig.load(root), renderer)

    return _make


@pytest.fixture
def read_file():
    """Read a project-relative file as UTF-8 without newline translation."""

    def _read(root: Path, rel_path: str) -> str:
        return (root / rel_path).read_bytes().decode("utf-8")

    return _read


# ---------------------------------------------------------------------------
# Sample entities
# ---------------------------------------------------------------------------

@pytest.fixture
def category_entity() -> EntityDefinition:
    return parse_entity("Category", ["name:string[unique,searchable]"])


@pytest.fixture
def post_entity() -> EntityDefinition:
    """A post that belongs to a category."""
    return parse_entity(
        "Post",
        [
            "title:string[min=3,max=120,searchable]",
            "body:text?",
            "status:enum(draft,published)",
            "category_id:uuid->Category",
        ],
    )


@pytest.fixture
def tagged_post_entity() -> EntityDefinition:
    """A post with a many-to-many relation to ``Tag``."""
    return parse_entity("Post", ["title:string", "tags:m2m->Tag"])


@pytest.fixture
def tag_entity() -> EntityDefinition:
    return parse_entity("Tag", ["label:string[unique]"])
