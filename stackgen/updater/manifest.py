"""Content-fingerprint manifest of generated files.

The manifest (``.stackgen/manifest.json``) remembers, for every file the
generator wrote, the sha256 fingerprint of what it wrote.  Comparing that
fingerprint with the file on disk tells the update planner whether the user
has edited the file since.  Fingerprints only ever enter the manifest
through a write performed by :class:`ManifestTracker` (or, for projects
that predate the manifest, through :meth:`ManifestTracker.initialize_baseline`).
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from stackgen import __version__
from stackgen.errors import StateFileCorrupt
from stackgen.utils import encode_text, read_text, write_text_atomic


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def fingerprint(content: str | bytes) -> str:
    """Return ``"sha256:<hex>"`` for the UTF-8 bytes of *content*."""
    data = encode_text(content) if isinstance(content, str) else content
    return "sha256:" + hashlib.sha256(data).hexdigest()


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class FileCategory(str, Enum):
    """What kind of generated file a record describes."""
    SCAFFOLD = "scaffold"
    ENTITY = "entity"
    MARKER = "marker"
    JUNCTION = "junction"


class FileRecord(BaseModel):
    """Fingerprint of one generated file.

    ``path`` is the manifest key; it is not repeated inside the JSON record.
    """

    path: str = Field(default="", exclude=True)
    fingerprint: str
    generator_version: str = Field(default=__version__)
    category: FileCategory = FileCategory.ENTITY
    template: Optional[str] = None
    entity: Optional[str] = None
    generated_at: datetime = Field(default_factory=_utcnow)


class Manifest(BaseModel):
    """All file records of one project, keyed by project-relative POSIX path."""

    project_name: str = ""
    generator_version: str = Field(default=__version__)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    files: dict[str, FileRecord] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fill_record_paths(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("files"), dict):
            data = {
                **data,
                "files": {
                    key: {**record, "path": key} if isinstance(record, dict) else record
                    for key, record in data["files"].items()
                },
            }
        return data

    def by_category(self, category: FileCategory) -> dict[str, FileRecord]:
        return {p: r for p, r in self.files.items() if r.category is category}


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------


class ManifestTracker:
    """Writes generated files and records their fingerprints.

    The manifest is loaded lazily and saved as a whole document, atomically,
    after every tracked write.
    """

    def __init__(self, root: str | Path, manifest_path: str | Path, project_name: str = "") -> None:
        self.root = Path(root)
        self.manifest_path = Path(manifest_path)
        self.project_name = project_name
        self._manifest: Manifest | None = None

    # -- Persistence -------------------------------------------------------

    @property
    def manifest(self) -> Manifest:
        if self._manifest is None:
            self._manifest = self.load()
        return self._manifest

    def load(self) -> Manifest:
        """Read the manifest from disk, or start an empty one.

        Raises:
            StateFileCorrupt: The manifest exists but is not a valid document.
        """
        raw = read_text(self.manifest_path)
        if raw is None:
            return Manifest(project_name=self.project_name)
        try:
            return Manifest.model_validate_json(raw)
        except ValidationError as exc:
            raise StateFileCorrupt(self.manifest_path, str(exc)) from exc

    def save(self) -> Path:
        manifest = self.manifest
        manifest.updated_at = _utcnow()
        return write_text_atomic(self.manifest_path, manifest.model_dump_json(indent=2) + "\n")

    # -- Paths -------------------------------------------------------------

    def relative(self, path: str | Path) -> str:
        """Normalise *path* to the project-relative POSIX key used in the manifest."""
        candidate = Path(path)
        if candidate.is_absolute():
            candidate = candidate.relative_to(self.root)
        return candidate.as_posix()

    def absolute(self, path: str | Path) -> Path:
        return self.root / self.relative(path)

    # -- Records -----------------------------------------------------------

    def get(self, path: str | Path) -> FileRecord | None:
        return self.manifest.files.get(self.relative(path))

    def record(
        self,
        path: str | Path,
        content: str | bytes,
        *,
        category: FileCategory = FileCategory.ENTITY,
        template: str | None = None,
        entity: str | None = None,
    ) -> FileRecord:
        """Upsert the record for *path* with the fingerprint of *content*.

        Metadata not given is kept from an existing record.
        """
        key = self.relative(path)
        previous = self.manifest.files.get(key)
        record = FileRecord(
            path=key,
            fingerprint=fingerprint(content),
            generator_version=__version__,
            category=category if previous is None else previous.category,
            template=template or (previous.template if previous else None),
            entity=entity or (previous.entity if previous else None),
        )
        self.manifest.files[key] = record
        return record

    def write(
        self,
        path: str | Path,
        content: str,
        *,
        category: FileCategory = FileCategory.ENTITY,
        template: str | None = None,
        entity: str | None = None,
    ) -> Path:
        """Atomically write *content* to *path*, then record and save."""
        target = self.absolute(path)
        write_text_atomic(target, content)
        self.record(target, content, category=category, template=template, entity=entity)
        self.save()
        return target

    def initialize_baseline(
        self,
        paths: Iterable[str | Path],
        *,
        category: FileCategory = FileCategory.SCAFFOLD,
        templates: dict[str, str] | None = None,
    ) -> Manifest:
        """Fingerprint the given files as they currently are on disk.

        Files are never modified.  Missing files and files that already have
        a record are left alone.
        """
        templates = templates or {}
        for path in paths:
            key = self.relative(path)
            if key in self.manifest.files:
                continue
            content = read_text(self.root / key)
            if content is None:
                continue
            self.record(key, content, category=category, template=templates.get(key))
        self.save()
        return self.manifest
