"""Cross-entity relation resolution.

When an entity is generated, its relations may require code in *other*
entities' files:

- ``BelongsTo``: the target gets a reverse relationship, a "list by foreign
  key" handler and its route.  Skipped when the target does not exist yet.
- ``ManyToMany``: a junction table is generated and both participants get a
  relationship through it plus list/add/remove handlers and routes.  When
  the other participant does not exist yet, the relation is queued in
  ``.stackgen/pending_relations.json`` and resolved when it is generated.

Injected code is placed before the ``RELATIONS``, ``RELATION_HANDLERS`` and
``RELATION_ROUTES`` anchors of the receiving files.  Every snippet depends
only on the participating entity names, so applying a relation twice, or
from the other side, produces the same files.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stackgen.errors import (
    IoFailure,
    MarkerError,
    RelationTargetInconsistent,
    StackgenError,
    StateFileCorrupt,
)
from stackgen.parser.models import EntityDefinition, RelationDefinition, RelationKind
from stackgen.scaffolder.junction import JunctionDefinition, generate_junction, junction_name
from stackgen.scaffolder.layout import ENTITY_ANCHORS, entity_exists, entity_files, name_context
from stackgen.scaffolder.markers import MARKERS, Marker, inject_into_file
from stackgen.scaffolder.templates import TemplateRenderer
from stackgen.updater.manifest import FileCategory, ManifestTracker
from stackgen.utils import (
    kebab_case,
    load_json,
    pascal_case,
    print_action,
    print_warning,
    read_text,
    save_json,
    snake_case,
)

__all__ = [
    "AppliedRelationsReport",
    "PendingRelation",
    "PendingRelationStore",
    "RelationOutcome",
    "RelationResolver",
    "ensure_entity_structure",
    "entity_structure_problems",
    "junction_name",
]

_BELONGS_TO_TEMPLATE = "relations/belongs_to.j2"
_MANY_TO_MANY_TEMPLATE = "relations/many_to_many.j2"


# ---------------------------------------------------------------------------
# Pending relations
# ---------------------------------------------------------------------------


class PendingRelation(BaseModel):
    """A relation waiting for its target entity to be generated."""
    model_config = ConfigDict(frozen=True)

    source_entity: str
    target_entity: str
    relation_type: RelationKind = RelationKind.MANY_TO_MANY

    @property
    def key(self) -> tuple[str, ...]:
        """Deduplication key; unordered for many-to-many."""
        if self.relation_type is RelationKind.MANY_TO_MANY:
            pair = sorted((snake_case(self.source_entity), snake_case(self.target_entity)))
            return (self.relation_type.value, *pair)
        return (
            self.relation_type.value,
            snake_case(self.source_entity),
            snake_case(self.target_entity),
        )


class PendingRelationStore:
    """The persisted queue of pending relations, rewritten as a whole."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> list[PendingRelation]:
        """Read the queue; an unreadable document raises ``StateFileCorrupt``."""
        try:
            raw = load_json(self.path, default=[])
            if not isinstance(raw, list):
                raise StateFileCorrupt(self.path, "expected a JSON list of relations")
            return [PendingRelation.model_validate(r) for r in raw]
        except (json.JSONDecodeError, ValidationError) as exc:
            raise StateFileCorrupt(self.path, str(exc)) from exc

    def save(self, records: list[PendingRelation]) -> Path:
        return save_json([r.model_dump(mode="json") for r in records], self.path)

    def add(self, record: PendingRelation) -> bool:
        """Queue *record* unless a record with the same key is already queued."""
        records = self.load()
        if any(r.key == record.key for r in records):
            return False
        records.append(record)
        self.save(records)
        return True

    def pending_for(self, target: str) -> list[PendingRelation]:
        """Records waiting for *target*, in queue order."""
        wanted = snake_case(target)
        return [r for r in self.load() if snake_case(r.target_entity) == wanted]

    def remove(self, resolved: list[PendingRelation]) -> None:
        keys = {r.key for r in resolved}
        records = self.load()
        remaining = [r for r in records if r.key not in keys]
        if len(remaining) != len(records):
            self.save(remaining)


# ---------------------------------------------------------------------------
# Structure checks
# ---------------------------------------------------------------------------


def entity_structure_problems(root: Path, name: str) -> list[str]:
    """Describe what is missing for *name* to receive injected relation code."""
    files = entity_files(name)
    problems: list[str] = []
    for attr, marker in ENTITY_ANCHORS.items():
        rel_path = getattr(files, attr)
        contents = read_text(Path(root) / rel_path)
        if contents is None:
            problems.append(f"{rel_path} (missing file)")
        elif not any(line.strip() == marker.anchor for line in contents.splitlines()):
            problems.append(f"{rel_path} ({marker.name} anchor)")
    return problems


def ensure_entity_structure(root: Path, name: str) -> None:
    """Raise ``RelationTargetInconsistent`` unless *name* has all its anchors."""
    problems = entity_structure_problems(root, name)
    if problems:
        raise RelationTargetInconsistent(pascal_case(name), problems)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class RelationOutcome(BaseModel):
    """Effect of applying one relation."""

    description: str
    files_written: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.errors


class AppliedRelationsReport(BaseModel):
    applied: list[PendingRelation] = Field(default_factory=list)
    retained: list[PendingRelation] = Field(default_factory=list)
    files_written: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class RelationResolver:
    """Applies relation side effects to other entities' files."""

    def __init__(
        self,
        root: str | Path,
        renderer: TemplateRenderer,
        tracker: ManifestTracker,
        store: PendingRelationStore,
        context: dict | None = None,
    ) -> None:
        self.root = Path(root)
        self.renderer = renderer
        self.tracker = tracker
        self.store = store
        self.context = context or {}

    # -- BelongsTo ---------------------------------------------------------

    def apply_belongs_to(
        self, entity: EntityDefinition, relation: RelationDefinition
    ) -> RelationOutcome | None:
        """Inject reverse artifacts for ``entity.fk -> target`` into the target.

        Returns ``None`` when there is nothing to do: the target does not
        exist yet or the foreign key points at the entity itself.
        """
        target = relation.target_entity
        if snake_case(target) == entity.snake or not entity_exists(self.root, target):
            return None

        fk = relation.fk_column or relation.field_name
        parent = name_context(target)
        child = name_context(entity.name)
        attr = child["plural"]
        url = child["kebab_plural"]
        if fk != parent["id_param"]:
            fk_base = fk[: -len("_id")] if fk.endswith("_id") else fk
            attr = f"{child['plural']}_by_{fk_base}"
            url = f"{child['kebab_plural']}-by-{kebab_case(fk_base)}"

        outcome = RelationOutcome(description=f"{entity.name}.{fk} -> {parent['name']}")
        snippet_args = {
            "parent": parent,
            "child": child,
            "fk": fk,
            "attr": attr,
            "func": f"list_{attr}",
            "route_path": f"/{{{parent['id_param']}}}/{url}",
        }

        files = entity_files(target)
        model_contents = read_text(self.root / files.model) or ""
        if f"    {attr}: Mapped[" not in model_contents:
            self._inject(
                files.model, MARKERS["RELATIONS"],
                self._snippet(_BELONGS_TO_TEMPLATE, "model_line", snippet_args),
                parent["name"], outcome,
            )
        self._inject(
            files.handlers, MARKERS["RELATION_HANDLERS"],
            self._snippet(_BELONGS_TO_TEMPLATE, "handler", snippet_args),
            parent["name"], outcome,
        )
        self._inject(
            files.routes, MARKERS["RELATION_ROUTES"],
            self._snippet(_BELONGS_TO_TEMPLATE, "route", snippet_args),
            parent["name"], outcome,
        )
        return outcome

    # -- ManyToMany --------------------------------------------------------

    def apply_many_to_many(self, source: str, target: str) -> RelationOutcome:
        """Generate the junction if missing and wire both participants to it.

        Both participants must exist; callers check with
        :func:`ensure_entity_structure` first.
        """
        junction = JunctionDefinition.between(source, target)
        outcome = RelationOutcome(
            description=f"{pascal_case(source)} <-> {pascal_case(target)} via {junction.name}"
        )

        try:
            written = generate_junction(
                self.root, self.renderer, self.tracker, junction, self.context
            )
        except StackgenError as exc:
            outcome.errors.append(str(exc))
            print_warning(f"Junction {junction.name}: {exc}")
            return outcome
        outcome.files_written.extend(written)

        for owner, related in ((source, target), (target, source)):
            self._wire_many_to_many(owner, related, junction, outcome)
        return outcome

    def _wire_many_to_many(
        self, owner: str, related: str, junction: JunctionDefinition, outcome: RelationOutcome
    ) -> None:
        owner_ctx = name_context(owner)
        related_ctx = name_context(related)
        snippet_args = {
            "owner": owner_ctx,
            "related": related_ctx,
            "junction": junction.context(),
            "collection_path": f"/{{{owner_ctx['id_param']}}}/{related_ctx['kebab_plural']}",
            "member_path": (
                f"/{{{owner_ctx['id_param']}}}/{related_ctx['kebab_plural']}"
                f"/{{{related_ctx['id_param']}}}"
            ),
        }
        files = entity_files(owner)
        injections: list[tuple[str, Marker, str]] = [
            (files.model, MARKERS["RELATIONS"], "model_line"),
            (files.handlers, MARKERS["RELATION_HANDLERS"], "list_handler"),
            (files.handlers, MARKERS["RELATION_HANDLERS"], "add_handler"),
            (files.handlers, MARKERS["RELATION_HANDLERS"], "remove_handler"),
            (files.routes, MARKERS["RELATION_ROUTES"], "list_route"),
            (files.routes, MARKERS["RELATION_ROUTES"], "add_route"),
            (files.routes, MARKERS["RELATION_ROUTES"], "remove_route"),
        ]
        for rel_path, marker, macro in injections:
            self._inject(
                rel_path, marker,
                self._snippet(_MANY_TO_MANY_TEMPLATE, macro, snippet_args),
                owner_ctx["name"], outcome,
            )

    # -- Pending queue -----------------------------------------------------

    def queue(self, source: str, target: str) -> bool:
        """Record a many-to-many relation whose target does not exist yet."""
        record = PendingRelation(
            source_entity=pascal_case(source),
            target_entity=pascal_case(target),
            relation_type=RelationKind.MANY_TO_MANY,
        )
        added = self.store.add(record)
        if added:
            print_action("pending", f"{record.source_entity} -> {record.target_entity}")
        return added

    def resolve_pending(self, target: str) -> AppliedRelationsReport:
        """Apply every queued relation whose target is *target*.

        A record whose source or target lacks the expected structure is
        logged and kept in the queue; so is one whose application failed.
        """
        report = AppliedRelationsReport()
        for record in self.store.pending_for(target):
            try:
                ensure_entity_structure(self.root, record.source_entity)
                ensure_entity_structure(self.root, record.target_entity)
            except RelationTargetInconsistent as exc:
                print_warning(f"Pending relation kept: {exc}")
                report.errors.append(str(exc))
                report.retained.append(record)
                continue

            outcome = self.apply_many_to_many(record.source_entity, record.target_entity)
            report.files_written.extend(outcome.files_written)
            if outcome.complete:
                report.applied.append(record)
            else:
                report.errors.extend(outcome.errors)
                report.retained.append(record)

        self.store.remove(report.applied)
        return report

    # -- Helpers -----------------------------------------------------------

    def _snippet(self, template_id: str, macro: str, args: dict) -> str:
        return self.renderer.render_macro(template_id, macro, **args)

    def _inject(
        self,
        rel_path: str,
        marker: Marker,
        snippet: str,
        entity: str,
        outcome: RelationOutcome,
    ) -> None:
        def write(path: Path, content: str) -> None:
            self.tracker.write(path, content, category=FileCategory.ENTITY, entity=entity)

        try:
            written = inject_into_file(self.root / rel_path, marker, snippet, write=write)
        except (MarkerError, IoFailure) as exc:
            outcome.errors.append(str(exc))
            print_warning(str(exc))
            return
        if written:
            print_action("inject", rel_path, marker.name)
            if rel_path not in outcome.files_written:
                outcome.files_written.append(rel_path)
