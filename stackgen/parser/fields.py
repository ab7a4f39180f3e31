"""Field specification parser.

Turns command-line style field specs into an ``EntityDefinition``::

    title:string[min=3,max=120,searchable]
    price:decimal?
    status:enum(draft,published)[required]
    category_id:uuid->Category?
    tags:m2m->Tag
    comments:has_many->Comment

Grammar of a single spec::

    name ':' type ['?'] ['[' rule (',' rule)* ']'] ['->' Target ['?']]

Any malformed spec raises ``ParseError`` carrying the offending token; no
partial definition is ever returned.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from stackgen.errors import ParseError
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
from stackgen.utils import pascal_case


# ---------------------------------------------------------------------------
# Token tables
# ---------------------------------------------------------------------------

TYPE_ALIASES: dict[str, FieldKind] = {
    "string": FieldKind.STRING,
    "str": FieldKind.STRING,
    "text": FieldKind.TEXT,
    "bool": FieldKind.BOOL,
    "boolean": FieldKind.BOOL,
    "i32": FieldKind.INT32,
    "int": FieldKind.INT32,
    "int32": FieldKind.INT32,
    "integer": FieldKind.INT32,
    "i64": FieldKind.INT64,
    "int64": FieldKind.INT64,
    "bigint": FieldKind.INT64,
    "f64": FieldKind.FLOAT64,
    "float": FieldKind.FLOAT64,
    "float64": FieldKind.FLOAT64,
    "double": FieldKind.FLOAT64,
    "decimal": FieldKind.DECIMAL,
    "money": FieldKind.DECIMAL,
    "uuid": FieldKind.UUID,
    "datetime": FieldKind.DATETIME,
    "timestamp": FieldKind.DATETIME,
    "date": FieldKind.DATE,
    "json": FieldKind.JSON,
    "jsonb": FieldKind.JSON,
    "file": FieldKind.FILE,
    "image": FieldKind.IMAGE,
}

RELATION_TOKENS: dict[str, RelationKind] = {
    "has_many": RelationKind.HAS_MANY,
    "m2m": RelationKind.MANY_TO_MANY,
}

_BARE_RULES: dict[str, RuleKind] = {
    "required": RuleKind.REQUIRED,
    "unique": RuleKind.UNIQUE,
    "email": RuleKind.EMAIL,
    "url": RuleKind.URL,
}

# Columns every generated table already has.
RESERVED_FIELD_NAMES = frozenset({"id", "created_at", "updated_at"})

_VISIBILITY_KEYWORDS: dict[str, VisibilityKind] = {
    "admin_only": VisibilityKind.ADMIN_ONLY,
    "authenticated": VisibilityKind.AUTHENTICATED,
}

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ENTITY_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
_VARIANT_RE = re.compile(r"^[\w.\- ]+$")
_SUFFIX_RE = re.compile(
    r"^(?P<optional>\?)?"
    r"(?:\[(?P<rules>.*)\])?"
    r"(?:->(?P<target>[A-Za-z][A-Za-z0-9_]*)(?P<target_optional>\?)?)?$"
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_field_type(token: str) -> FieldType:
    """Resolve a type token (case-insensitive) to a ``FieldType``.

    ``enum(a, b, c)`` yields an enumeration with variants in declared order.
    """
    stripped = token.strip()
    lower = stripped.lower()
    if lower.startswith("enum(") and lower.endswith(")"):
        inner = stripped[len("enum("):-1]
        variants = tuple(v.strip() for v in inner.split(","))
        if not any(variants):
            raise ParseError(token, "Enum type requires at least one variant")
        for variant in variants:
            if not _VARIANT_RE.match(variant):
                raise ParseError(variant or token, "Invalid enum variant")
        if len(set(variants)) != len(variants):
            raise ParseError(token, "Duplicate enum variant")
        return FieldType(kind=FieldKind.ENUM, variants=variants)
    kind = TYPE_ALIASES.get(lower)
    if kind is None:
        raise ParseError(token, "Unknown field type")
    return FieldType(kind=kind)


def parse_field_spec(spec: str) -> FieldDefinition | RelationDefinition:
    """Parse one field spec into a field or a relation-only definition.

    A ``->Target`` suffix on an ordinary type yields a ``FieldDefinition``
    whose ``relation_target`` is set; the caller derives the BelongsTo
    relation from it.  ``has_many`` and ``m2m`` yield a
    ``RelationDefinition`` directly.
    """
    name, sep, rest = spec.strip().partition(":")
    if not sep:
        raise ParseError(spec, "Invalid field format, expected name:type")
    name = name.strip()
    if not _IDENT_RE.match(name):
        raise ParseError(name or spec, "Invalid field name")
    if name.lower() in RESERVED_FIELD_NAMES:
        raise ParseError(name, "Reserved field name")

    type_token, remainder = _split_type_token(rest.strip(), spec)
    match = _SUFFIX_RE.match(remainder)
    if match is None:
        if "[" in remainder and "]" not in remainder:
            raise ParseError(remainder, "Unclosed rule list")
        raise ParseError(remainder or spec, "Malformed field specification")

    rules_text = match.group("rules")
    target = match.group("target")
    optional = bool(match.group("optional") or match.group("target_optional"))

    relation_kind = RELATION_TOKENS.get(type_token.lower())
    if relation_kind is not None:
        if not target:
            raise ParseError(
                spec, f"{type_token} requires a target entity ({name}:{type_token}->Entity)"
            )
        if rules_text is not None:
            raise ParseError(rules_text, "Relation fields do not take rules")
        return RelationDefinition(
            kind=relation_kind,
            field_name=name,
            target_entity=pascal_case(target),
            optional=optional,
        )

    field_type = parse_field_type(type_token)
    rules, visibility, searchable = (
        _parse_rules(rules_text) if rules_text is not None else ((), Visibility(), False)
    )
    return FieldDefinition(
        name=name,
        type=field_type,
        optional=optional,
        relation_target=pascal_case(target) if target else None,
        validation_rules=rules,
        visibility=visibility,
        searchable=searchable,
    )


def parse_entity(name: str, field_specs: Iterable[str]) -> EntityDefinition:
    """Parse an entity name and its field specs into an ``EntityDefinition``.

    Fields with a ``->Target`` also contribute a ``BelongsTo`` relation whose
    foreign-key column is the field name.
    """
    if not _ENTITY_RE.match(name.strip()):
        raise ParseError(name, "Invalid entity name")

    fields: list[FieldDefinition] = []
    relations: list[RelationDefinition] = []
    seen: set[str] = set()

    for spec in field_specs:
        parsed = parse_field_spec(spec)
        parsed_name = parsed.name if isinstance(parsed, FieldDefinition) else parsed.field_name
        if parsed_name in seen:
            raise ParseError(parsed_name, "Duplicate field name")
        seen.add(parsed_name)

        if isinstance(parsed, RelationDefinition):
            relations.append(parsed)
            continue

        fields.append(parsed)
        if parsed.relation_target:
            relations.append(
                RelationDefinition(
                    kind=RelationKind.BELONGS_TO,
                    field_name=parsed.name,
                    target_entity=parsed.relation_target,
                    optional=parsed.optional,
                    fk_column=parsed.name,
                )
            )

    return EntityDefinition(
        name=pascal_case(name),
        fields=tuple(fields),
        relations=tuple(relations),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _split_type_token(rest: str, spec: str) -> tuple[str, str]:
    """Split ``type...`` into the type token and the unparsed suffix."""
    if rest.lower().startswith("enum("):
        close = rest.find(")")
        if close == -1:
            raise ParseError(rest, "Unclosed enum variant list")
        return rest[: close + 1], rest[close + 1:]
    match = re.match(r"[A-Za-z0-9_]+", rest)
    if match is None:
        raise ParseError(spec, "Missing field type")
    return match.group(0), rest[match.end():]


def _parse_rules(
    text: str,
) -> tuple[tuple[ValidationRule, ...], Visibility, bool]:
    """Parse the inside of a ``[...]`` rule list.

    Returns the validation rules (deduplicated, declared order), the field
    visibility (the last visibility token wins) and the searchable flag.
    """
    rules: list[ValidationRule] = []
    visibility: Visibility | None = None
    searchable = False

    parts = [p.strip() for p in text.split(",")]
    if not any(parts):
        raise ParseError(f"[{text}]", "Empty rule list")

    for part in parts:
        if not part:
            raise ParseError(f"[{text}]", "Empty rule in rule list")

        key, sep, value = part.partition("=")
        key, value = key.strip(), value.strip()

        if not sep:
            if key == "searchable":
                searchable = True
            elif key in _VISIBILITY_KEYWORDS:
                visibility = Visibility(kind=_VISIBILITY_KEYWORDS[key])
            elif key in _BARE_RULES:
                rules.append(ValidationRule(kind=_BARE_RULES[key]))
            else:
                raise ParseError(part, "Unknown rule")
            continue

        if key in ("min", "max"):
            if not (value.isascii() and value.isdigit()):
                raise ParseError(part, f"{key} requires a non-negative integer")
            rules.append(ValidationRule(kind=RuleKind(key), value=int(value)))
        elif key == "regex":
            if not value:
                raise ParseError(part, "regex requires a pattern")
            rules.append(ValidationRule(kind=RuleKind.REGEX, value=value))
        elif key == "roles":
            roles = tuple(dict.fromkeys(r.strip() for r in value.split(";") if r.strip()))
            if not roles:
                raise ParseError(part, "roles requires at least one role")
            visibility = Visibility(kind=VisibilityKind.ROLES, roles=roles)
        else:
            raise ParseError(part, "Unknown rule")

    return tuple(dict.fromkeys(rules)), visibility or Visibility(), searchable

