"""Command-line front end for stackgen.

A thin pass-through onto the generation engine; every subcommand maps to one
core operation and prints its report.

Examples::

    python -m stackgen new blog -o ./work
    python -m stackgen entity Post "title:string[min=3,searchable]" "tags:m2m->Tag" -p ./work/blog
    python -m stackgen pending Tag -p ./work/blog
    python -m stackgen update --on-conflict diff -p ./work/blog
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from stackgen import __version__
from stackgen.config import ProjectConfig
from stackgen.errors import ParseError, StackgenError
from stackgen.parser import parse_entity
from stackgen.scaffolder.generator import EntityGenerator, ProjectGenerator
from stackgen.updater.planner import Resolution, UpdatePlanner
from stackgen.utils import console, encode_text, print_error, print_success, print_summary_table, print_warning


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_new(args: argparse.Namespace) -> int:
    config = ProjectConfig.from_env(args.name)
    overrides = {
        key: value
        for key, value in (("description", args.description), ("api_prefix", args.api_prefix))
        if value is not None
    }
    if overrides:
        config = ProjectConfig(**{**config.model_dump(), **overrides})
    root = ProjectGenerator(config).create_project(Path(args.output))
    print_success(f"Project created at {root}")
    return 0


def _cmd_entity(args: argparse.Namespace) -> int:
    try:
        entity = parse_entity(args.name, args.fields)
    except ParseError as exc:
        print_error(f"Error: {exc}")
        return 2

    generator = EntityGenerator(ProjectConfig.load(Path(args.project)))
    report = generator.generate_entity(entity)
    print_summary_table(report.summary(), title=f"Entity {entity.name}")
    for record in report.pending_recorded:
        print_warning(
            f"{record.source_entity} <-> {record.target_entity} is pending until "
            f"{record.target_entity} is generated"
        )
    for error in report.errors:
        print_error(error)
    return 0 if report.ok else 1


def _cmd_pending(args: argparse.Namespace) -> int:
    generator = EntityGenerator(ProjectConfig.load(Path(args.project)))
    report = generator.apply_pending_relations_for(args.name)
    print_summary_table(
        {
            "Applied": len(report.applied),
            "Retained": len(report.retained),
            "Files written": len(report.files_written),
        },
        title=f"Pending relations for {args.name}",
    )
    for error in report.errors:
        print_error(error)
    return 0 if not report.errors else 1


def _cmd_update(args: argparse.Namespace) -> int:
    planner = UpdatePlanner(ProjectConfig.load(Path(args.project)))

    if args.init:
        manifest = planner.initialize_baseline()
        print_success(f"Manifest initialised with {len(manifest.files)} files")
        return 0

    plan = planner.plan_update()
    print_summary_table(plan.summary(), title="Update plan")
    if not plan.has_changes:
        print_success("Everything is up to date")
        return 0

    resolution = Resolution(args.on_conflict) if args.on_conflict else None
    resolutions = {item.path: resolution for item in plan.conflicts if resolution}
    report = planner.apply_update(plan, resolutions)

    for path, diff in report.diffs.items():
        console.rule(path)
        console.print(encode_text(diff).decode("utf-8", "replace"), markup=False, highlight=False)
    for path in report.unresolved:
        print_warning(f"Conflict left unresolved: {path}")
    print_success(f"{len(report.written)} files written")
    return 0 if not report.unresolved else 1


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stackgen",
        description="stackgen -- incremental full-stack project generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m stackgen new blog -o ./work\n"
            "  python -m stackgen entity Post title:string \"tags:m2m->Tag\" -p ./work/blog\n"
            "  python -m stackgen update --on-conflict skip -p ./work/blog\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"stackgen {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    new = sub.add_parser("new", help="Create a new project")
    new.add_argument("name", help="Project name (also the directory name)")
    new.add_argument("--output", "-o", default=".", help="Parent directory (default: .)")
    new.add_argument(
        "--description", default=None, help="Project description (default: $STACKGEN_DESCRIPTION)"
    )
    new.add_argument(
        "--api-prefix",
        default=None,
        help="API route prefix (default: $STACKGEN_API_PREFIX or /api)",
    )
    new.set_defaults(func=_cmd_new)

    entity = sub.add_parser("entity", help="Generate or regenerate an entity")
    entity.add_argument("name", help="Entity name, e.g. Post")
    entity.add_argument("fields", nargs="*", help="Field specs, e.g. title:string[min=3]")
    entity.set_defaults(func=_cmd_entity)

    pending = sub.add_parser("pending", help="Resolve relations waiting for an entity")
    pending.add_argument("name", help="Target entity name")
    pending.set_defaults(func=_cmd_pending)

    update = sub.add_parser("update", help="Update scaffold files to the current templates")
    update.add_argument(
        "--init",
        action="store_true",
        help="Record the current scaffold files in the manifest without changing them",
    )
    update.add_argument(
        "--on-conflict",
        choices=[r.value for r in Resolution],
        default=None,
        help="How to resolve files changed both locally and in the templates",
    )
    update.set_defaults(func=_cmd_update)

    for command in (entity, pending, update):
        command.add_argument(
            "--project", "-p", default=".", help="Project root (default: current directory)"
        )

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for ``python -m stackgen``."""
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except FileNotFoundError as exc:
        print_error(f"Error: {exc}")
        return 2
    except StackgenError as exc:
        print_error(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
