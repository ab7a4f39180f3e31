"""Tests for TemplateRenderer (stackgen.scaffolder.templates)."""

from __future__ import annotations

from pathlib import Path

import pytest
from jinja2 import UndefinedError

from stackgen.scaffolder.layout import AGGREGATOR_FILES, ENTITY_TEMPLATES, SCAFFOLD_FILES, name_context
from stackgen.scaffolder.templates import TemplateRenderer

pytestmark = pytest.mark.unit


@pytest.fixture
def inline(tmp_path: Path):
    """Render a one-off template body through a renderer rooted at tmp_path."""
    renderer = TemplateRenderer(tmp_path)

    def _render(body: str, **context) -> str:
        (tmp_path / "inline.j2").write_text(body, encoding="utf-8")
        return renderer.render("inline.j2", context)

    return _render


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class TestFilters:
    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("{{ 'BlogPost'|snake_case }}", "blog_post"),
            ("{{ 'blog_post'|pascal_case }}", "BlogPost"),
            ("{{ 'blog-post'|camel_case }}", "blogPost"),
            ("{{ 'BlogPost'|kebab_case }}", "blog-post"),
            ("{{ 'category'|plural }}", "categories"),
        ],
    )
    def test_case_filters(self, inline, expression, expected):
        assert inline(expression) == expected

    def test_undefined_variables_raise(self, inline):
        with pytest.raises(UndefinedError):
            inline("{{ missing }}")

    def test_no_html_escaping(self, inline):
        assert inline("{{ x }}", x="<a & b>") == "<a & b>"

    def test_html_templates_are_not_escaped(self, tmp_path: Path):
        (tmp_path / "index.html.j2").write_text("<title>{{ name }}</title>\n", encoding="utf-8")
        rendered = TemplateRenderer(tmp_path).render("index.html.j2", {"name": "Tom & Jerry"})
        assert rendered == "<title>Tom & Jerry</title>\n"

    def test_trailing_newline_kept(self, inline):
        assert inline("line\n") == "line\n"


# ---------------------------------------------------------------------------
# Template discovery
# ---------------------------------------------------------------------------


class TestTemplates:
    def test_every_referenced_template_exists(self, renderer: TemplateRenderer):
        referenced = {*SCAFFOLD_FILES.values(), *AGGREGATOR_FILES.values(), *ENTITY_TEMPLATES.values()}
        missing = [t for t in referenced if not (renderer.template_dir / t).is_file()]
        assert missing == []

    def test_custom_template_dir(self, tmp_path: Path):
        (tmp_path / "hello.j2").write_text("Hello {{ name|pascal_case }}\n", encoding="utf-8")
        renderer = TemplateRenderer(tmp_path)
        assert renderer.render("hello.j2", {"name": "big_world"}) == "Hello BigWorld\n"


# ---------------------------------------------------------------------------
# Macros
# ---------------------------------------------------------------------------


class TestRenderMacro:
    def test_registration_lines(self, renderer: TemplateRenderer):
        entity = name_context("BlogPost")

        def render(macro: str) -> str:
            return renderer.render_macro("project/registrations.j2", macro, entity=entity).strip("\n")

        assert render("model_import") == "from app.models.blog_post import BlogPost"
        assert render("route_import") == (
            "from app.routes.blog_post import router as blog_post_router"
        )
        assert render("route_include") == "api_router.include_router(blog_post_router)"
        assert render("page_import") == (
            'import BlogPostPage from "./features/blog_post/BlogPostPage";'
        )
        assert render("nav_link").strip() == '<NavLink to="/blog-posts">Blog Posts</NavLink>'
        assert render("page_route").strip() == (
            '<Route path="/blog-posts" element={<BlogPostPage />} />'
        )

    def test_unknown_macro(self, renderer: TemplateRenderer):
        with pytest.raises(AttributeError):
            renderer.render_macro("project/registrations.j2", "nope", entity={})
