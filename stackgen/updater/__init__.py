"""stackgen updater: manifest tracking and scaffold-file updates.

Quick usage::

    from stackgen.config import ProjectConfig
    from stackgen.updater import Resolution, UpdatePlanner

    planner = UpdatePlanner(ProjectConfig.load(Path(".")))
    plan = planner.plan_update()
    report = planner.apply_update(plan, {"backend/app/main.py": Resolution.SKIP})
"""

from stackgen.updater.manifest import (
    FileCategory,
    FileRecord,
    Manifest,
    ManifestTracker,
    fingerprint,
)
from stackgen.updater.planner import (
    ApplyReport,
    Resolution,
    UpdateAction,
    UpdateItem,
    UpdatePlan,
    UpdatePlanner,
)

__all__ = [
    "ApplyReport",
    "FileCategory",
    "FileRecord",
    "Manifest",
    "ManifestTracker",
    "Resolution",
    "UpdateAction",
    "UpdateItem",
    "UpdatePlan",
    "UpdatePlanner",
    "fingerprint",
]
