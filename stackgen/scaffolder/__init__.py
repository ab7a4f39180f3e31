"""stackgen scaffolder: project skeletons, entity files and relation wiring.

Renders a FastAPI + SQLAlchemy backend and a React + TypeScript frontend
from Jinja2 templates, registers entities in the shared aggregator files
through anchor injection and keeps user code after the custom-block
sentinel across regenerations.

Quick usage::

    from stackgen.config import ProjectConfig
    from stackgen.parser import parse_entity
    from stackgen.scaffolder import EntityGenerator, ProjectGenerator

    root = ProjectGenerator(ProjectConfig(name="blog")).create_project("/tmp")
    generator = EntityGenerator(ProjectConfig.load(root))
    report = generator.generate_entity(parse_entity("Post", ["title:string"]))
"""

from stackgen.scaffolder.custom_block import CustomBlock, write_generated
from stackgen.scaffolder.generator import EntityGenerator, GenerationReport, ProjectGenerator
from stackgen.scaffolder.junction import JunctionDefinition, junction_name
from stackgen.scaffolder.markers import MARKERS, Marker, inject_into_file, insert_before
from stackgen.scaffolder.relations import (
    AppliedRelationsReport,
    PendingRelation,
    PendingRelationStore,
    RelationResolver,
)
from stackgen.scaffolder.templates import TemplateRenderer

__all__ = [
    "AppliedRelationsReport",
    "CustomBlock",
    "EntityGenerator",
    "GenerationReport",
    "JunctionDefinition",
    "MARKERS",
    "Marker",
    "PendingRelation",
    "PendingRelationStore",
    "ProjectGenerator",
    "RelationResolver",
    "TemplateRenderer",
    "inject_into_file",
    "insert_before",
    "junction_name",
    "write_generated",
]
