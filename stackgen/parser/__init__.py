"""stackgen entity parser.

Parses command-line field specifications into immutable entity, field and
relation definitions, and maps every field type to its target-stack
representations.

Usage::

    from stackgen.parser import parse_entity, map_field_type

    post = parse_entity("Post", ["title:string[min=3]", "tags:m2m->Tag"])
    for field in post.fields:
        print(field.name, map_field_type(field.type).column)
"""

from stackgen.parser.fields import parse_entity, parse_field_spec, parse_field_type
from stackgen.parser.models import (
    EntityDefinition,
    FieldDefinition,
    FieldKind,
    FieldType,
    RelationDefinition,
    RelationKind,
    RuleKind,
    ValidationRule,
    Visibility,
    VisibilityKind,
)
from stackgen.parser.type_mapping import TargetTypes, filter_method, is_numeric, map_field_type

__all__ = [
    "parse_entity",
    "parse_field_spec",
    "parse_field_type",
    "map_field_type",
    "filter_method",
    "is_numeric",
    "TargetTypes",
    "EntityDefinition",
    "FieldDefinition",
    "FieldKind",
    "FieldType",
    "RelationDefinition",
    "RelationKind",
    "RuleKind",
    "ValidationRule",
    "Visibility",
    "VisibilityKind",
]
