"""Scaffold-file update planning and application.

``stackgen update`` re-renders every scaffold file with the current
templates and compares three fingerprints per file: what the manifest says
was generated, what is on disk now, and what would be generated now.

=========================  ============================  ==================
on disk vs. recorded       fresh render vs. recorded     classification
=========================  ============================  ==================
same                       different                     auto-update
same                       same                          unchanged
different                  same                          skip (user edit)
different                  different                     conflict
no record, no file         n/a                           create
record, no file            n/a                           skip (deleted)
no record, file exists     n/a                           skip (untracked)
=========================  ============================  ==================

Conflicts are never resolved automatically.
"""

from __future__ import annotations

import difflib
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from stackgen import __version__
from stackgen.config import ProjectConfig
from stackgen.errors import UpdateConflict
from stackgen.scaffolder.layout import SCAFFOLD_FILES, project_context
from stackgen.scaffolder.templates import TemplateRenderer
from stackgen.updater.manifest import FileCategory, Manifest, ManifestTracker, fingerprint
from stackgen.utils import print_action, read_text


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class UpdateAction(str, Enum):
    AUTO_UPDATE = "auto_update"
    CONFLICT = "conflict"
    CREATE = "create"
    SKIP = "skip"
    UNCHANGED = "unchanged"


class Resolution(str, Enum):
    """How the user chose to resolve a conflict."""
    OVERWRITE = "overwrite"
    SKIP = "skip"
    SHOW_DIFF = "diff"


class UpdateItem(BaseModel):
    """One scaffold file and what the update would do to it."""

    path: str
    template: str
    action: UpdateAction
    reason: str = ""
    new_content: str = Field(default="", repr=False)


class UpdatePlan(BaseModel):
    auto_update: list[UpdateItem] = Field(default_factory=list)
    conflicts: list[UpdateItem] = Field(default_factory=list)
    new_files: list[UpdateItem] = Field(default_factory=list)
    skipped: list[UpdateItem] = Field(default_factory=list)
    unchanged: list[UpdateItem] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.auto_update or self.new_files or self.conflicts)

    def summary(self) -> dict[str, int]:
        return {
            "Auto-update": len(self.auto_update),
            "New files": len(self.new_files),
            "Conflicts": len(self.conflicts),
            "Skipped": len(self.skipped),
            "Unchanged": len(self.unchanged),
        }


class ApplyReport(BaseModel):
    written: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    unresolved: list[str] = Field(default_factory=list)
    diffs: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------


class UpdatePlanner:
    """Classifies scaffold files against the manifest and applies updates."""

    def __init__(
        self,
        config: ProjectConfig,
        renderer: TemplateRenderer | None = None,
        tracker: ManifestTracker | None = None,
        scaffold_files: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config
        self.renderer = renderer or TemplateRenderer()
        self.tracker = tracker or ManifestTracker(
            config.root, config.manifest_path, project_name=config.name
        )
        self.scaffold_files = dict(scaffold_files or SCAFFOLD_FILES)

    # -- Planning ----------------------------------------------------------

    def plan_update(self) -> UpdatePlan:
        """Classify every scaffold file; nothing is written."""
        plan = UpdatePlan()
        context = project_context(self.config)

        for path, template in self.scaffold_files.items():
            fresh = self.renderer.render(template, context)
            item = self._classify(path, template, fresh)
            bucket = {
                UpdateAction.AUTO_UPDATE: plan.auto_update,
                UpdateAction.CONFLICT: plan.conflicts,
                UpdateAction.CREATE: plan.new_files,
                UpdateAction.SKIP: plan.skipped,
                UpdateAction.UNCHANGED: plan.unchanged,
            }[item.action]
            bucket.append(item)

        return plan

    def _classify(self, path: str, template: str, fresh: str) -> UpdateItem:
        record = self.tracker.get(path)
        on_disk = read_text(self.config.root / path)

        def item(action: UpdateAction, reason: str = "") -> UpdateItem:
            return UpdateItem(
                path=path, template=template, action=action, reason=reason, new_content=fresh
            )

        if record is None:
            if on_disk is None:
                return item(UpdateAction.CREATE, "new in this version")
            return item(UpdateAction.SKIP, "not tracked by the manifest")
        if on_disk is None:
            return item(UpdateAction.SKIP, "deleted by user")

        user_edited = fingerprint(on_disk) != record.fingerprint
        template_changed = fingerprint(fresh) != record.fingerprint

        if not user_edited:
            if template_changed:
                return item(UpdateAction.AUTO_UPDATE, "template changed")
            return item(UpdateAction.UNCHANGED)
        if not template_changed:
            return item(UpdateAction.SKIP, "modified locally")
        return item(UpdateAction.CONFLICT, "modified locally and template changed")

    # -- Applying ----------------------------------------------------------

    def apply_update(
        self,
        plan: UpdatePlan,
        resolutions: Mapping[str, Resolution] | None = None,
    ) -> ApplyReport:
        """Write auto-updates and new files, and apply conflict resolutions.

        Conflicts without a resolution, or resolved with ``SHOW_DIFF``, are
        reported as unresolved; ``SHOW_DIFF`` also attaches a unified diff.
        Skipped files keep their previous manifest record.
        """
        resolutions = resolutions or {}
        report = ApplyReport()

        for item in [*plan.auto_update, *plan.new_files]:
            self._write(item)
            report.written.append(item.path)

        for item in plan.conflicts:
            resolution = resolutions.get(item.path)
            if resolution is Resolution.OVERWRITE:
                self._write(item)
                report.written.append(item.path)
            elif resolution is Resolution.SKIP:
                print_action("skip", item.path, "kept local version")
                report.skipped.append(item.path)
            else:
                if resolution is Resolution.SHOW_DIFF:
                    report.diffs[item.path] = self.diff(item)
                report.unresolved.append(item.path)

        report.skipped.extend(item.path for item in plan.skipped)

        self.tracker.manifest.generator_version = __version__
        self.tracker.save()
        return report

    def apply_item(self, item: UpdateItem, resolution: Resolution | None = None) -> bool:
        """Apply a single plan item; returns whether the file was written.

        Raises:
            UpdateConflict: *item* is a conflict and no resolution that
                decides it (overwrite or skip) was given.
        """
        if item.action in (UpdateAction.AUTO_UPDATE, UpdateAction.CREATE):
            self._write(item)
            return True
        if item.action is UpdateAction.CONFLICT:
            if resolution is Resolution.OVERWRITE:
                self._write(item)
                return True
            if resolution is not Resolution.SKIP:
                raise UpdateConflict(item.path)
        return False

    def diff(self, item: UpdateItem) -> str:
        """Unified diff from the file on disk to the freshly rendered content."""
        current = read_text(self.config.root / item.path) or ""
        return "".join(
            difflib.unified_diff(
                current.splitlines(keepends=True),
                item.new_content.splitlines(keepends=True),
                fromfile=f"a/{item.path}",
                tofile=f"b/{item.path}",
            )
        )

    def _write(self, item: UpdateItem) -> Path:
        action = "create" if item.action is UpdateAction.CREATE else "update"
        path = self.tracker.write(
            item.path, item.new_content, category=FileCategory.SCAFFOLD, template=item.template
        )
        print_action(action, item.path)
        return path

    # -- Baseline ----------------------------------------------------------

    def initialize_baseline(self) -> Manifest:
        """Record the scaffold files of a project created before the manifest existed."""
        return self.tracker.initialize_baseline(
            self.scaffold_files.keys(),
            category=FileCategory.SCAFFOLD,
            templates=self.scaffold_files,
        )
