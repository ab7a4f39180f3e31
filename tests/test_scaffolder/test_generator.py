"""Tests for project and entity generation (stackgen.scaffolder.generator).

Covers:
- Project skeleton creation and manifest bookkeeping
- Rendered entity files (model, schemas, migration, frontend types)
- Registration in the aggregator files
- Pending many-to-many relations (queued, then resolved)
- Idempotent regeneration and declaration-order commutativity
- Custom code durability
- Partial failures (corrupted anchors, inconsistent pending targets)
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from stackgen.config import ProjectConfig
from stackgen.parser import parse_entity
from stackgen.scaffolder.generator import EntityGenerator, ProjectGenerator
from stackgen.scaffolder.layout import (
    AGGREGATOR_FILES,
    APP_TSX,
    MODELS_INIT,
    ROUTES_INIT,
    SCAFFOLD_FILES,
    entity_files,
    junction_files,
)
from stackgen.scaffolder.relations import PendingRelation
from stackgen.updater.manifest import FileCategory, ManifestTracker

pytestmark = pytest.mark.unit


def _snapshot(root: Path) -> dict[str, str]:
    """Every generated file of a project, keyed by relative path."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes().decode("utf-8")
        for p in sorted(root.rglob("*"))
        if p.is_file() and ".stackgen" not in p.relative_to(root).parts
    }


def _new_project(parent: Path) -> Path:
    return ProjectGenerator(ProjectConfig(name="blog")).create_project(parent)


# ---------------------------------------------------------------------------
# ProjectGenerator
# ---------------------------------------------------------------------------


class TestCreateProject:
    def test_writes_scaffold_and_aggregators(self, project_root: Path):
        for rel_path in [*SCAFFOLD_FILES, *AGGREGATOR_FILES]:
            assert (project_root / rel_path).is_file(), rel_path

    def test_root_is_named_after_project(self, tmp_path: Path, project_root: Path):
        assert project_root == tmp_path / "blog"

    def test_state_directory(self, project_root: Path):
        config = ProjectConfig.load(project_root)
        assert config.name == "blog"
        assert config.description == "A test blog."
        assert json.loads(config.pending_path.read_text(encoding="utf-8")) == []

    def test_manifest_tracks_every_file(self, project: ProjectConfig):
        manifest = ManifestTracker(project.root, project.manifest_path).load()
        assert manifest.project_name == "blog"
        assert set(manifest.by_category(FileCategory.SCAFFOLD)) == set(SCAFFOLD_FILES)
        assert set(manifest.by_category(FileCategory.MARKER)) == set(AGGREGATOR_FILES)
        assert manifest.files["backend/app/main.py"].template == "project/backend/app/main.py.j2"

    def test_aggregators_carry_their_anchors(self, project_root: Path, read_file):
        assert "# === STACKGEN:MODELS ===" in read_file(project_root, MODELS_INIT)
        routes = read_file(project_root, ROUTES_INIT)
        assert "# === STACKGEN:ROUTE_MODULES ===" in routes
        assert "# === STACKGEN:ROUTES ===" in routes
        app = read_file(project_root, APP_TSX)
        for anchor in ("STACKGEN:IMPORTS", "STACKGEN:NAV_LINKS", "STACKGEN:APP_ROUTES"):
            assert anchor in app

    def test_api_prefix_is_rendered(self, tmp_path: Path, read_file):
        root = ProjectGenerator(ProjectConfig(name="shop", api_prefix="v2/")).create_project(tmp_path)
        assert 'api_prefix: str = "/v2"' in read_file(root, "backend/app/config.py")

    def test_rerun_keeps_existing_files_and_queue(self, tmp_path: Path, project_root: Path):
        (project_root / "README.md").write_text("mine\n", encoding="utf-8")
        pending = ProjectConfig.load(project_root).pending_path
        pending.write_text('[{"source_entity": "Post", "target_entity": "Tag"}]', encoding="utf-8")

        ProjectGenerator(ProjectConfig(name="blog")).create_project(tmp_path)
        assert (project_root / "README.md").read_text(encoding="utf-8") == "mine\n"
        assert "Post" in pending.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Entity files
# ---------------------------------------------------------------------------


class TestEntityFiles:
    def test_all_files_written(self, project_root: Path, generator: EntityGenerator, post_entity):
        report = generator.generate_entity(post_entity)
        for rel_path in entity_files("Post"):
            assert (project_root / rel_path).is_file(), rel_path
            assert rel_path in report.files_written
        assert report.ok

    def test_every_entity_file_ends_with_custom_sentinel(self, project_root: Path, generator,
                                                         post_entity, read_file):
        generator.generate_entity(post_entity)
        files = entity_files("Post")
        assert read_file(project_root, files.model).endswith("# === STACKGEN:CUSTOM ===\n")
        assert read_file(project_root, files.page).endswith("// === STACKGEN:CUSTOM ===\n")

    def test_model(self, project_root: Path, generator, post_entity, read_file):
        generator.generate_entity(post_entity)
        model = read_file(project_root, entity_files("Post").model)
        assert "class Post(Base):" in model
        assert '__tablename__ = "posts"' in model
        assert "title: Mapped[str] = mapped_column(String(255), nullable=False)" in model
        assert "body: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)" in model
        assert (
            "category_id: Mapped[uuid.UUID] = mapped_column("
            'Uuid(), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)'
        ) in model
        assert 'category: Mapped["Category"] = relationship(foreign_keys=[category_id])' in model

    def test_schemas(self, project_root: Path, generator, post_entity, read_file):
        generator.generate_entity(post_entity)
        schema = read_file(project_root, entity_files("Post").schema)
        assert "title: str = Field(..., min_length=3, max_length=120)" in schema
        assert "body: Optional[str] = Field(None)" in schema
        assert 'status: Literal["draft", "published"] = Field(...)' in schema
        assert 'status: Optional[Literal["draft", "published"]] = Field(None)' in schema
        assert "class PostRead(BaseModel):" in schema

    def test_reserved_word_field_is_escaped(self, project_root: Path, generator, read_file):
        generator.generate_entity(parse_entity("Course", ["class:string"]))
        files = entity_files("Course")
        assert 'class_: Mapped[str] = mapped_column("class", String(255), nullable=False)' in (
            read_file(project_root, files.model)
        )
        schema = read_file(project_root, files.schema)
        assert 'class_: str = Field(..., alias="class")' in schema
        assert 'class_: str = Field(serialization_alias="class")' in schema

    def test_visibility_table(self, project_root: Path, generator, read_file):
        generator.generate_entity(
            parse_entity("Employee", ["name:string", "salary:decimal[admin_only]",
                                      "notes:text[roles=hr;manager]"])
        )
        schema = read_file(project_root, entity_files("Employee").schema)
        assert '"salary": "admin_only",' in schema
        assert '"notes": ["hr", "manager"],' in schema
        assert '"name":' not in schema

    def test_migration(self, project_root: Path, generator, post_entity, read_file):
        generator.generate_entity(post_entity)
        migration = read_file(project_root, entity_files("Post").migration)
        assert 'revision = "create_post_table"' in migration
        assert 'depends_on: tuple[str, ...] = ("create_category_table", )' in migration
        assert '"title" VARCHAR(255) NOT NULL,' in migration
        assert '"body" TEXT,' in migration
        assert """"status" VARCHAR(255) NOT NULL CHECK ("status" IN ('draft', 'published')),""" in migration
        assert '"category_id" UUID NOT NULL REFERENCES categories (id) ON DELETE CASCADE,' in migration
        assert 'ix_posts_category_id ON posts ("category_id")' in migration

    def test_unique_column(self, project_root: Path, generator, category_entity, read_file):
        generator.generate_entity(category_entity)
        migration = read_file(project_root, entity_files("Category").migration)
        assert '"name" VARCHAR(255) NOT NULL UNIQUE,' in migration
        assert "depends_on: tuple[str, ...] = ()" in migration

    def test_frontend_types(self, project_root: Path, generator, post_entity, read_file):
        generator.generate_entity(post_entity)
        types = read_file(project_root, entity_files("Post").types)
        assert "export interface Post {" in types
        assert "  body: string | null;" in types
        assert '  status: "draft" | "published";' in types
        assert 'export const PostStatusOptions = ["draft", "published"] as const;' in types

    def test_page(self, project_root: Path, generator, post_entity, read_file):
        generator.generate_entity(post_entity)
        page = read_file(project_root, entity_files("Post").page)
        assert "export default function PostPage()" in page
        assert 'import { PostStatusOptions } from "./types";' in page
        assert "{PostStatusOptions.map((option) => (" in page
        assert '"/posts"' in page

    def test_handlers_filter_and_search(self, project_root: Path, generator, post_entity, read_file):
        generator.generate_entity(post_entity)
        handlers = read_file(project_root, entity_files("Post").handlers)
        assert "Post.title.ilike(pattern)," in handlers
        assert "category_id: Optional[uuid.UUID] = None," in handlers
        assert "stmt = stmt.where(Post.category_id == category_id)" in handlers
        assert "stmt = stmt.where(Post.status.contains(status))" in handlers


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegistration:
    def test_entity_registered_in_aggregators(self, project_root: Path, generator, tag_entity,
                                              read_file):
        generator.generate_entity(tag_entity)
        assert "from app.models.tag import Tag\n# === STACKGEN:MODELS ===" in (
            read_file(project_root, MODELS_INIT)
        )
        routes = read_file(project_root, ROUTES_INIT)
        assert "from app.routes.tag import router as tag_router" in routes
        assert "api_router.include_router(tag_router)" in routes
        app = read_file(project_root, APP_TSX)
        assert 'import TagPage from "./features/tag/TagPage";' in app
        assert '<NavLink to="/tags">Tags</NavLink>' in app
        assert '<Route path="/tags" element={<TagPage />} />' in app

    def test_similar_names_do_not_collide(self, project_root: Path, generator, read_file):
        generator.generate_entity(parse_entity("PostComment", ["body:text"]))
        generator.generate_entity(parse_entity("Post", ["title:string"]))
        routes = read_file(project_root, ROUTES_INIT)
        assert "api_router.include_router(post_router)" in routes
        assert "api_router.include_router(post_comment_router)" in routes

    def test_registration_recorded_as_marker_writes(self, project: ProjectConfig, generator,
                                                    tag_entity):
        generator.generate_entity(tag_entity)
        manifest = ManifestTracker(project.root, project.manifest_path).load()
        assert manifest.files[MODELS_INIT].category is FileCategory.MARKER
        assert manifest.files["backend/app/models/tag.py"].category is FileCategory.ENTITY
        assert manifest.files["backend/app/models/tag.py"].entity == "Tag"


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestBelongsToScenario:
    def test_reverse_handler_injected_exactly_once(self, project_root: Path, make_generator,
                                                   category_entity, post_entity, read_file):
        make_generator(project_root).generate_entity(category_entity)
        first = make_generator(project_root).generate_entity(post_entity)
        assert first.relations_applied == ["Post.category_id -> Category"]

        second = make_generator(project_root).generate_entity(post_entity)
        assert second.files_written == []
        handlers = read_file(project_root, entity_files("Category").handlers)
        assert handlers.count("def list_posts(") == 1
        routes = read_file(project_root, entity_files("Category").routes)
        assert routes.count("handlers.list_posts") == 1

    def test_regenerating_target_keeps_reverse_code(self, project_root: Path, make_generator,
                                                    category_entity, post_entity, read_file):
        make_generator(project_root).generate_entity(category_entity)
        make_generator(project_root).generate_entity(post_entity)

        wider = parse_entity("Category", ["name:string[unique,searchable]", "slug:string?"])
        make_generator(project_root).generate_entity(wider)
        files = entity_files("Category")
        assert "slug: Mapped[Optional[str]]" in read_file(project_root, files.model)
        assert 'posts: Mapped[list["Post"]]' in read_file(project_root, files.model)
        assert "def list_posts(" in read_file(project_root, files.handlers)
        assert "handlers.list_posts" in read_file(project_root, files.routes)


class TestPendingScenario:
    def test_pending_recorded_then_resolved(self, project_root: Path, make_generator,
                                            tagged_post_entity, tag_entity, read_file):
        first = make_generator(project_root).generate_entity(tagged_post_entity)
        assert first.pending_recorded == [PendingRelation(source_entity="Post", target_entity="Tag")]
        pending_path = ProjectConfig.load(project_root).pending_path
        assert json.loads(pending_path.read_text(encoding="utf-8")) == [
            {"source_entity": "Post", "target_entity": "Tag", "relation_type": "ManyToMany"}
        ]
        model_path, migration_path = junction_files("post_tag")
        assert not (project_root / model_path).exists()

        second = make_generator(project_root).generate_entity(tag_entity)
        assert second.relations_applied == ["Post <-> Tag (pending)"]
        assert json.loads(pending_path.read_text(encoding="utf-8")) == []
        assert (project_root / model_path).is_file()
        assert (project_root / migration_path).is_file()
        assert model_path in second.files_written
        assert "def list_tags(" in read_file(project_root, entity_files("Post").handlers)
        assert "def list_posts(" in read_file(project_root, entity_files("Tag").handlers)

    def test_repeated_declaration_queues_once(self, project_root: Path, make_generator,
                                              tagged_post_entity):
        make_generator(project_root).generate_entity(tagged_post_entity)
        make_generator(project_root).generate_entity(tagged_post_entity)
        generator = make_generator(project_root)
        assert len(generator.store.load()) == 1

    def test_inconsistent_source_is_retained(self, project_root: Path, make_generator,
                                             tagged_post_entity, tag_entity, read_file):
        make_generator(project_root).generate_entity(tagged_post_entity)
        handlers = project_root / entity_files("Post").handlers
        handlers.write_text(
            read_file(project_root, entity_files("Post").handlers).replace(
                "# === STACKGEN:RELATION_HANDLERS ===\n", ""
            ),
            encoding="utf-8",
        )

        report = make_generator(project_root).generate_entity(tag_entity)
        assert any("Post" in e for e in report.errors)
        assert (project_root / entity_files("Tag").model).is_file()
        assert "from app.models.tag import Tag" in read_file(project_root, MODELS_INIT)
        generator = make_generator(project_root)
        assert generator.store.pending_for("Tag") == [
            PendingRelation(source_entity="Post", target_entity="Tag")
        ]

        # Regenerating Post restores its anchors and applies the relation directly.
        repaired = generator.generate_entity(tagged_post_entity)
        assert repaired.ok
        assert "def list_tags(" in read_file(project_root, entity_files("Post").handlers)
        assert make_generator(project_root).store.load() == []

    def test_apply_pending_relations_for(self, project_root: Path, make_generator,
                                         tagged_post_entity, tag_entity):
        make_generator(project_root).generate_entity(tagged_post_entity)
        make_generator(project_root).generate_entity(tag_entity)
        report = make_generator(project_root).apply_pending_relations_for("Tag")
        assert report.applied == []
        assert report.retained == []


# ---------------------------------------------------------------------------
# Convergence
# ---------------------------------------------------------------------------


def _build(root: Path, definitions) -> None:
    for name, specs in definitions:
        generator = EntityGenerator(ProjectConfig.load(root))
        generator.generate_entity(parse_entity(name, specs))


@pytest.mark.integration
class TestConvergence:
    ENTITIES = [
        ("Category", ["name:string[unique]"]),
        ("Post", ["title:string[min=3]", "category_id:uuid->Category?", "tags:m2m->Tag"]),
        ("Tag", ["label:string"]),
    ]

    def test_regeneration_is_idempotent(self, tmp_path: Path):
        root = _new_project(tmp_path)
        _build(root, self.ENTITIES)
        before = _snapshot(root)

        for name, specs in self.ENTITIES:
            report = EntityGenerator(ProjectConfig.load(root)).generate_entity(
                parse_entity(name, specs)
            )
            assert report.files_written == [], name
            assert report.ok
        assert _snapshot(root) == before

    def test_many_to_many_declaration_order_commutes(self, tmp_path: Path):
        """Either declaration order yields the same files.

        Entity and junction files must match byte for byte. Aggregator files
        (models package, route registry, App.tsx) receive one registration line
        per entity in generation order, so they are compared as sets of lines.
        """
        post_first = _new_project(tmp_path / "a")
        _build(post_first, [("Post", ["title:string", "tags:m2m->Tag"]), ("Tag", ["label:string"])])

        tag_first = _new_project(tmp_path / "b")
        _build(tag_first, [("Tag", ["label:string"]), ("Post", ["title:string", "tags:m2m->Tag"])])

        declared_on_tag = _new_project(tmp_path / "c")
        _build(declared_on_tag, [("Tag", ["label:string", "posts:m2m->Post"]), ("Post", ["title:string"])])

        expected = _snapshot(post_first)
        for root in (tag_first, declared_on_tag):
            actual = _snapshot(root)
            assert set(actual) == set(expected)
            for rel_path, contents in expected.items():
                if rel_path in AGGREGATOR_FILES:
                    assert set(actual[rel_path].splitlines()) == set(contents.splitlines()), rel_path
                else:
                    assert actual[rel_path] == contents, rel_path

    def test_custom_code_survives_regeneration(self, tmp_path: Path):
        root = _new_project(tmp_path)
        _build(root, self.ENTITIES)
        files = entity_files("Post")
        custom_py = "\ndef featured(db):\n    return []\n"
        custom_tsx = "\nexport const FEATURED = true;\n"
        with (root / files.model).open("a", encoding="utf-8") as handle:
            handle.write(custom_py)
        with (root / files.page).open("a", encoding="utf-8") as handle:
            handle.write(custom_tsx)

        _build(root, [("Post", [*self.ENTITIES[1][1], "published_at:datetime?"])])
        model = (root / files.model).read_text(encoding="utf-8")
        assert model.endswith("# === STACKGEN:CUSTOM ===\n" + custom_py)
        assert "published_at: Mapped[Optional[datetime]]" in model
        assert 'tags: Mapped[list["Tag"]]' in model
        assert (root / files.page).read_text(encoding="utf-8").endswith(custom_tsx)


# ---------------------------------------------------------------------------
# Partial failures
# ---------------------------------------------------------------------------


class TestPartialFailures:
    def test_missing_aggregator_anchor(self, project_root: Path, generator, tag_entity, read_file):
        routes = project_root / ROUTES_INIT
        routes.write_text(
            read_file(project_root, ROUTES_INIT).replace("# === STACKGEN:ROUTES ===\n", ""),
            encoding="utf-8",
        )
        report = generator.generate_entity(tag_entity)

        assert not report.ok
        assert any("ROUTES" in e for e in report.errors)
        assert any(w.startswith("Missing anchor ROUTES") for w in report.warnings)
        assert (project_root / entity_files("Tag").model).is_file()
        assert "from app.routes.tag import router as tag_router" in read_file(project_root, ROUTES_INIT)
        assert "from app.models.tag import Tag" in read_file(project_root, MODELS_INIT)

    def test_check_prerequisites(self, generator, post_entity, category_entity):
        warnings = generator.check_prerequisites(post_entity)
        assert len(warnings) == 1
        assert "Category" in warnings[0]
        generator.generate_entity(category_entity)
        assert generator.check_prerequisites(post_entity) == []

    def test_non_utf8_bytes_survive_regeneration(self, project_root: Path, generator, tag_entity,
                                                 category_entity):
        generator.generate_entity(tag_entity)
        model = project_root / entity_files("Tag").model
        custom = b"# caf\xe9 au lait\n"
        model.write_bytes(model.read_bytes() + custom)
        models_init = project_root / MODELS_INIT
        models_init.write_bytes(b"# r\xe9sum\xe9\n" + models_init.read_bytes())

        report = generator.generate_entity(parse_entity("Tag", ["label:string[unique]", "color:string?"]))
        assert report.ok
        data = model.read_bytes()
        assert data.endswith(b"# === STACKGEN:CUSTOM ===\n" + custom)
        assert b"color" in data

        assert generator.generate_entity(category_entity).ok
        registry = models_init.read_bytes()
        assert registry.startswith(b"# r\xe9sum\xe9\n")
        assert b"from app.models.category import Category" in registry
