"""Field type to target representation mapping.

Every ``FieldKind`` maps to six representations used by the templates:

- ``storage``: Python annotation in the SQLAlchemy model / Pydantic schema
- ``wire``: TypeScript type in the generated frontend
- ``column``: PostgreSQL DDL type
- ``ui_control``: form control component kind
- ``input_kind``: HTML ``<input type=...>``
- ``schema_builder``: SQLAlchemy column type expression

The table is audited at import time so that adding a kind without mapping it
fails loudly instead of producing a partial function.
"""

from __future__ import annotations

from typing import NamedTuple

from stackgen.parser.models import FieldKind, FieldType


class TargetTypes(NamedTuple):
    storage: str
    wire: str
    column: str
    ui_control: str
    input_kind: str
    schema_builder: str


_TYPE_TABLE: dict[FieldKind, TargetTypes] = {
    FieldKind.STRING: TargetTypes("str", "string", "VARCHAR(255)", "Input", "text", "String(255)"),
    FieldKind.TEXT: TargetTypes("str", "string", "TEXT", "Textarea", "text", "Text()"),
    FieldKind.BOOL: TargetTypes("bool", "boolean", "BOOLEAN", "Switch", "checkbox", "Boolean()"),
    FieldKind.INT32: TargetTypes("int", "number", "INTEGER", "Input", "number", "Integer()"),
    FieldKind.INT64: TargetTypes("int", "number", "BIGINT", "Input", "number", "BigInteger()"),
    FieldKind.FLOAT64: TargetTypes("float", "number", "DOUBLE PRECISION", "Input", "number", "Float()"),
    FieldKind.DECIMAL: TargetTypes("Decimal", "number", "DECIMAL", "Input", "number", "Numeric()"),
    FieldKind.UUID: TargetTypes("uuid.UUID", "string", "UUID", "Input", "text", "Uuid()"),
    FieldKind.DATETIME: TargetTypes(
        "datetime", "string", "TIMESTAMPTZ", "Input", "datetime-local", "DateTime(timezone=True)"
    ),
    FieldKind.DATE: TargetTypes("date", "string", "DATE", "Input", "date", "Date()"),
    FieldKind.JSON: TargetTypes("dict[str, Any]", "unknown", "JSONB", "Textarea", "text", "JSONB()"),
    FieldKind.ENUM: TargetTypes("str", "string", "VARCHAR(255)", "Select", "text", "String(255)"),
    FieldKind.FILE: TargetTypes("str", "string", "VARCHAR(512)", "FileInput", "file", "String(512)"),
    FieldKind.IMAGE: TargetTypes("str", "string", "VARCHAR(512)", "ImageInput", "file", "String(512)"),
}

_unmapped = set(FieldKind) - set(_TYPE_TABLE)
if _unmapped:
    raise RuntimeError(
        "Field kinds without a type mapping: "
        + ", ".join(sorted(k.value for k in _unmapped))
    )


def map_field_type(field_type: FieldType) -> TargetTypes:
    """Return the six target representations for *field_type*.

    Enumerations narrow their wire type to a union of the variant literals.
    """
    targets = _TYPE_TABLE[field_type.kind]
    if field_type.kind is FieldKind.ENUM:
        wire = " | ".join(f'"{v}"' for v in field_type.variants)
        return targets._replace(wire=wire)
    return targets


def filter_method(field_type: FieldType) -> str:
    """How list endpoints filter on this field: ``contains``, ``eq`` or ``skip``."""
    kind = field_type.kind
    if kind in (FieldKind.STRING, FieldKind.TEXT, FieldKind.ENUM):
        return "contains"
    if kind in (FieldKind.JSON, FieldKind.FILE, FieldKind.IMAGE):
        return "skip"
    return "eq"


def is_numeric(field_type: FieldType) -> bool:
    return field_type.kind in (
        FieldKind.INT32,
        FieldKind.INT64,
        FieldKind.FLOAT64,
        FieldKind.DECIMAL,
    )
