"""Project and entity generation orchestrators.

``ProjectGenerator`` renders a new project skeleton (scaffold files plus the
aggregator files that entities register themselves in).  ``EntityGenerator``
runs one entity generation:

1. render the entity's own files, keeping custom blocks and code other
   entities injected into them;
2. register the entity in the aggregator files;
3. apply its relations to other entities, or queue them;
4. resolve relations that were waiting for this entity.

Steps 3 and 4 never prevent steps 1 and 2 from completing; their failures
are reported and logged instead.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from stackgen.config import ProjectConfig
from stackgen.errors import IoFailure, MarkerError, RelationTargetInconsistent
from stackgen.parser.models import (
    EntityDefinition,
    FieldDefinition,
    FieldKind,
    RelationKind,
    RuleKind,
    VisibilityKind,
)
from stackgen.parser.type_mapping import filter_method, is_numeric, map_field_type
from stackgen.scaffolder.custom_block import write_generated
from stackgen.scaffolder.layout import (
    AGGREGATOR_FILES,
    AGGREGATOR_MARKERS,
    APP_TSX,
    ENTITY_TEMPLATES,
    MODELS_INIT,
    ROUTES_INIT,
    SCAFFOLD_FILES,
    entity_exists,
    entity_files,
    name_context,
    project_context,
)
from stackgen.scaffolder.markers import MARKERS, inject_into_file, missing_markers
from stackgen.scaffolder.relations import (
    AppliedRelationsReport,
    PendingRelation,
    PendingRelationStore,
    RelationOutcome,
    RelationResolver,
    ensure_entity_structure,
)
from stackgen.scaffolder.templates import TemplateRenderer
from stackgen.updater.manifest import FileCategory, ManifestTracker
from stackgen.utils import pascal_case, print_action, print_warning, python_ident, snake_case

_REGISTRATIONS_TEMPLATE = "project/registrations.j2"

# (aggregator file, anchor, macro in registrations.j2)
_REGISTRATIONS: tuple[tuple[str, str, str], ...] = (
    (MODELS_INIT, "MODELS", "model_import"),
    (ROUTES_INIT, "ROUTE_MODULES", "route_import"),
    (ROUTES_INIT, "ROUTES", "route_include"),
    (APP_TSX, "IMPORTS", "page_import"),
    (APP_TSX, "NAV_LINKS", "nav_link"),
    (APP_TSX, "APP_ROUTES", "page_route"),
)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class GenerationReport(BaseModel):
    """What one ``generate_entity`` call did."""

    entity: str
    files_written: list[str] = Field(default_factory=list)
    files_skipped: list[str] = Field(default_factory=list)
    pending_recorded: list[PendingRelation] = Field(default_factory=list)
    relations_applied: list[str] = Field(default_factory=list)
    relations_partial: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_written(self, path: str) -> None:
        if path not in self.files_written:
            self.files_written.append(path)

    def summary(self) -> dict[str, Any]:
        return {
            "Entity": self.entity,
            "Files written": len(self.files_written),
            "Files unchanged": len(self.files_skipped),
            "Relations applied": len(self.relations_applied),
            "Relations partial": len(self.relations_partial),
            "Relations pending": len(self.pending_recorded),
            "Errors": len(self.errors),
        }


# ---------------------------------------------------------------------------
# Project generator
# ---------------------------------------------------------------------------


class ProjectGenerator:
    """Renders the skeleton of a new project."""

    def __init__(self, config: ProjectConfig, renderer: TemplateRenderer | None = None) -> None:
        self.config = config
        self.renderer = renderer or TemplateRenderer()

    def create_project(self, output_dir: str | Path) -> Path:
        """Generate the project under ``<output_dir>/<name>``.

        Files that already exist are left untouched, so running this over an
        existing directory only fills in what is missing.

        Returns:
            Path to the project root.
        """
        root = Path(output_dir) / self.config.name
        self.config = self.config.model_copy(update={"root": root})
        root.mkdir(parents=True, exist_ok=True)

        self.config.save()
        tracker = ManifestTracker(root, self.config.manifest_path, project_name=self.config.name)
        context = project_context(self.config)

        for files, category in (
            (SCAFFOLD_FILES, FileCategory.SCAFFOLD),
            (AGGREGATOR_FILES, FileCategory.MARKER),
        ):
            for rel_path, template in files.items():
                if (root / rel_path).exists():
                    print_action("skip", rel_path, "exists")
                    continue
                tracker.write(
                    rel_path,
                    self.renderer.render(template, context),
                    category=category,
                    template=template,
                )
                print_action("create", rel_path)

        tracker.save()
        if not self.config.pending_path.exists():
            PendingRelationStore(self.config.pending_path).save([])
        return root


# ---------------------------------------------------------------------------
# Entity generator
# ---------------------------------------------------------------------------


class EntityGenerator:
    """Generates entities into an existing project."""

    def __init__(
        self,
        config: ProjectConfig,
        renderer: TemplateRenderer | None = None,
        tracker: ManifestTracker | None = None,
        store: PendingRelationStore | None = None,
    ) -> None:
        self.config = config
        self.root = config.root
        self.renderer = renderer or TemplateRenderer()
        self.tracker = tracker or ManifestTracker(
            config.root, config.manifest_path, project_name=config.name
        )
        self.store = store or PendingRelationStore(config.pending_path)
        self.resolver = RelationResolver(
            self.root, self.renderer, self.tracker, self.store, project_context(config)
        )

    # -- Public API --------------------------------------------------------

    def check_prerequisites(self, entity: EntityDefinition) -> list[str]:
        """Warnings for foreign keys whose target entity does not exist yet."""
        warnings: list[str] = []
        for relation in entity.relations_of(RelationKind.BELONGS_TO):
            if snake_case(relation.target_entity) == entity.snake:
                continue
            if not entity_exists(self.root, relation.target_entity):
                warnings.append(
                    f"{entity.name}.{relation.field_name} references {relation.target_entity}, "
                    f"which does not exist yet; generate it to get the reverse relation"
                )
        return warnings

    def generate_entity(self, entity: EntityDefinition) -> GenerationReport:
        """Generate *entity*'s files and apply its relations.

        Re-running with the same definition rewrites nothing.
        """
        report = GenerationReport(entity=entity.name)
        for warning in self.check_prerequisites(entity):
            print_warning(warning)
            report.warnings.append(warning)

        self._render_own_files(entity, report)
        self._register(entity, report)

        for relation in entity.relations:
            if relation.kind is RelationKind.BELONGS_TO:
                outcome = self.resolver.apply_belongs_to(entity, relation)
                if outcome is not None:
                    self._record_outcome(outcome, report)
            elif relation.kind is RelationKind.MANY_TO_MANY:
                self._many_to_many(entity, relation.target_entity, report)

        applied = self.apply_pending_relations_for(entity.name)
        for path in applied.files_written:
            report.add_written(path)
        for record in applied.applied:
            report.relations_applied.append(
                f"{record.source_entity} <-> {record.target_entity} (pending)"
            )
        report.errors.extend(applied.errors)
        return report

    def apply_pending_relations_for(self, entity_name: str) -> AppliedRelationsReport:
        """Resolve every queued relation whose target is *entity_name*."""
        return self.resolver.resolve_pending(entity_name)

    # -- Steps -------------------------------------------------------------

    def _render_own_files(self, entity: EntityDefinition, report: GenerationReport) -> None:
        context = {**project_context(self.config), "entity": _entity_context(entity)}
        files = entity_files(entity.name)

        for key, template in ENTITY_TEMPLATES.items():
            rel_path = getattr(files, key)
            rendered = self.renderer.render(template, context)
            try:
                written = write_generated(
                    self.root / rel_path,
                    rendered,
                    write=self._writer(FileCategory.ENTITY, template, entity.name),
                )
            except IoFailure as exc:
                print_warning(str(exc))
                report.errors.append(str(exc))
                continue
            if written:
                print_action("create", rel_path)
                report.add_written(rel_path)
            else:
                print_action("skip", rel_path, "unchanged")
                report.files_skipped.append(rel_path)

    def _register(self, entity: EntityDefinition, report: GenerationReport) -> None:
        checks = [
            (self.root / path, marker)
            for path, markers in AGGREGATOR_MARKERS.items()
            for marker in markers
        ]
        for problem in missing_markers(checks):
            report.warnings.append(f"Missing anchor {problem}")

        entity_ctx = name_context(entity.name)
        for rel_path, marker_name, macro in _REGISTRATIONS:
            line = self.renderer.render_macro(_REGISTRATIONS_TEMPLATE, macro, entity=entity_ctx)
            marker = MARKERS[marker_name]
            try:
                written = inject_into_file(
                    self.root / rel_path,
                    marker,
                    line,
                    write=self._writer(FileCategory.MARKER, None, None),
                )
            except (MarkerError, IoFailure) as exc:
                print_warning(str(exc))
                report.errors.append(str(exc))
                continue
            if written:
                print_action("inject", rel_path, marker.name)
                report.add_written(rel_path)

    def _many_to_many(self, entity: EntityDefinition, target: str, report: GenerationReport) -> None:
        if snake_case(target) == entity.snake:
            message = f"{entity.name}: many-to-many relations to itself are not supported"
            print_warning(message)
            report.warnings.append(message)
            return

        if not entity_exists(self.root, target):
            self.resolver.queue(entity.name, target)
            report.pending_recorded.append(
                PendingRelation(source_entity=entity.name, target_entity=pascal_case(target))
            )
            return

        try:
            ensure_entity_structure(self.root, target)
        except RelationTargetInconsistent as exc:
            print_warning(str(exc))
            report.errors.append(str(exc))
            report.relations_partial.append(f"{entity.name} <-> {pascal_case(target)}")
            return
        outcome = self.resolver.apply_many_to_many(entity.name, target)
        if outcome.complete:
            self.store.remove(
                [PendingRelation(source_entity=entity.name, target_entity=pascal_case(target))]
            )
        self._record_outcome(outcome, report)

    # -- Helpers -----------------------------------------------------------

    def _writer(self, category: FileCategory, template: str | None, entity: str | None):
        def write(path: Path, content: str) -> None:
            self.tracker.write(path, content, category=category, template=template, entity=entity)

        return write

    @staticmethod
    def _record_outcome(outcome: RelationOutcome, report: GenerationReport) -> None:
        for path in outcome.files_written:
            report.add_written(path)
        if outcome.complete:
            report.relations_applied.append(outcome.description)
        else:
            report.relations_partial.append(outcome.description)
            report.errors.extend(outcome.errors)


# ---------------------------------------------------------------------------
# Template context enrichment
# ---------------------------------------------------------------------------

_TS_DEFAULTS: dict[str, str] = {
    "string": '""',
    "number": "0",
    "boolean": "false",
    "unknown": "null",
}

_FORM_CONTROLS = {"Input", "Textarea", "Switch", "Select"}
_NO_FORM_KINDS = {FieldKind.JSON, FieldKind.FILE, FieldKind.IMAGE}


def _entity_context(entity: EntityDefinition) -> dict[str, Any]:
    """Build the ``entity`` template variable from a definition."""
    fields = [_field_context(f, entity) for f in entity.fields]
    by_name = {f["name"]: f for f in fields}
    field_idents = {f["ident"] for f in fields}

    belongs_to: list[dict[str, Any]] = []
    depends_on: list[str] = []
    for relation in entity.relations_of(RelationKind.BELONGS_TO):
        fk = relation.fk_column or relation.field_name
        fk_ident = by_name[fk]["ident"] if fk in by_name else python_ident(fk)
        target = name_context(relation.target_entity)
        attr = fk[: -len("_id")] if fk.endswith("_id") else f"{fk}_ref"
        if attr in field_idents:
            attr = f"{attr}_ref"
        args = f"foreign_keys=[{fk_ident}]"
        if target["snake"] == entity.snake:
            args += ", remote_side=[id]"
        else:
            revision = f"create_{target['snake']}_table"
            if revision not in depends_on:
                depends_on.append(revision)
        mapped = f'Optional["{target["pascal"]}"]' if relation.optional else f'"{target["pascal"]}"'
        belongs_to.append({"attr": python_ident(attr), "mapped": mapped, "args": args, "target": target})

    has_many = [
        {"attr": python_ident(r.field_name), "target": name_context(r.target_entity)}
        for r in entity.relations_of(RelationKind.HAS_MANY)
    ]

    return {
        **name_context(entity.name),
        "fields": fields,
        "belongs_to": belongs_to,
        "has_many": has_many,
        "depends_on": sorted(depends_on),
        "filters": [f for f in fields if f["filter"] != "skip"],
        "searchable_fields": [f for f in fields if f["searchable"] and f["filter"] == "contains"],
        "enum_fields": [f for f in fields if f["variants"]],
        "form_fields": [
            f for f in fields if f["ui_control"] in _FORM_CONTROLS and f["kind"] not in _NO_FORM_KINDS
        ],
        "indexed": [f for f in fields if f["fk_table"]],
    }


def _field_context(field: FieldDefinition, entity: EntityDefinition) -> dict[str, Any]:
    """Every representation of one field that the entity templates need."""
    targets = map_field_type(field.type)
    kind = field.type.kind
    ident = python_ident(field.name)
    rules = {rule.kind: rule.value for rule in field.validation_rules}
    nullable = field.optional
    create_required = not field.optional or RuleKind.REQUIRED in rules
    variants = list(field.type.variants)

    # -- schema types ------------------------------------------------------
    if kind is FieldKind.ENUM:
        schema_type = "Literal[" + ", ".join(json.dumps(v) for v in variants) + "]"
    elif RuleKind.EMAIL in rules:
        schema_type = "EmailStr"
    else:
        schema_type = targets.storage
    read_type = targets.storage
    if nullable:
        read_type = f"Optional[{read_type}]"

    constraints: list[str] = []
    for rule_kind, bound in ((RuleKind.MIN, "min"), (RuleKind.MAX, "max")):
        if rule_kind in rules:
            if is_numeric(field.type):
                constraints.append(f"{'ge' if bound == 'min' else 'le'}={rules[rule_kind]}")
            else:
                constraints.append(f"{bound}_length={rules[rule_kind]}")
    if RuleKind.REGEX in rules:
        constraints.append(f"pattern={rules[RuleKind.REGEX]!r}")
    if RuleKind.URL in rules:
        constraints.append("pattern=r'^https?://'")
    alias = [f'alias="{field.name}"'] if ident != field.name else []

    create_type = f"Optional[{schema_type}]" if nullable else schema_type
    create_default = "..." if create_required else "None"
    create_field = f"Field({', '.join([create_default, *constraints, *alias])})"
    update_field = f"Field({', '.join(['None', *constraints, *alias])})"
    read_field = f' = Field(serialization_alias="{field.name}")' if alias else ""

    # -- storage -----------------------------------------------------------
    fk_table = None
    if field.relation_target:
        fk_table = name_context(field.relation_target)["plural"]
    column_args = [targets.schema_builder]
    if ident != field.name:
        column_args.insert(0, json.dumps(field.name))
    if fk_table:
        on_delete = "SET NULL" if nullable else "CASCADE"
        column_args.append(f'ForeignKey("{fk_table}.id", ondelete="{on_delete}")')
    column_args.append(f"nullable={nullable}")
    if RuleKind.UNIQUE in rules:
        column_args.append("unique=True")
    if fk_table:
        column_args.append("index=True")
    mapped = f"Optional[{targets.storage}]" if nullable else targets.storage

    ddl = f'"{field.name}" {targets.column}'
    if not nullable:
        ddl += " NOT NULL"
    if RuleKind.UNIQUE in rules:
        ddl += " UNIQUE"
    if fk_table:
        ddl += f" REFERENCES {fk_table} (id) ON DELETE {'SET NULL' if nullable else 'CASCADE'}"
    if variants:
        ddl += f' CHECK ("{field.name}" IN (' + ", ".join(f"'{v}'" for v in variants) + "))"

    # -- frontend ----------------------------------------------------------
    ts_type = f"{targets.wire} | null" if nullable else targets.wire
    if nullable:
        ts_default = "null"
    elif variants:
        ts_default = json.dumps(variants[0])
    else:
        ts_default = _TS_DEFAULTS.get(targets.wire, '""')
    ts_parse = "Number(e.target.value)" if targets.wire == "number" else "e.target.value"

    visibility = ""
    if field.visibility.kind is VisibilityKind.ROLES:
        visibility = json.dumps(list(field.visibility.roles))
    elif field.visibility.kind is not VisibilityKind.PUBLIC:
        visibility = json.dumps(field.visibility.kind.value)

    return {
        "name": field.name,
        "kind": kind,
        "ident": ident,
        "label": field.name.replace("_", " ").title(),
        "mapped": mapped,
        "column_args": ", ".join(column_args),
        "ddl": ddl,
        "fk_table": fk_table,
        "schema_type": schema_type,
        "read_type": read_type,
        "create_type": create_type,
        "create_field": create_field,
        "update_field": update_field,
        "read_field": read_field,
        "filter": filter_method(field.type),
        "filter_type": "str" if filter_method(field.type) == "contains" else targets.storage,
        "searchable": field.searchable,
        "variants": variants,
        "options_name": f"{entity.pascal}{pascal_case(field.name)}Options",
        "ts_type": ts_type,
        "ts_default": ts_default,
        "ts_parse": ts_parse,
        "ui_control": targets.ui_control,
        "input_kind": targets.input_kind,
        "visibility": visibility,
    }
