"""stackgen project configuration.

Typed configuration for a generated project.  The config is a Pydantic v2
model so it is validated on construction and round-trips through the
``.stackgen/project.json`` document without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from stackgen import __version__
from stackgen.errors import StateFileCorrupt
from stackgen.utils import read_text, write_text_atomic


class ProjectConfig(BaseModel):
    """Settings shared by every generation command run against one project.

    ``root`` is where the project lives on disk; it is not persisted because
    the project directory may be moved or checked out elsewhere.
    """

    name: str = Field(..., min_length=1, description="Project name, e.g. 'my-app'")
    description: str = Field(default="")
    api_prefix: str = Field(default="/api", description="URL prefix for all API routes")
    state_dir: str = Field(default=".stackgen")
    generator_version: str = Field(default=__version__)
    root: Path = Field(default=Path("."), exclude=True)

    @field_validator("api_prefix")
    @classmethod
    def _normalise_prefix(cls, value: str) -> str:
        value = "/" + value.strip("/")
        return "" if value == "/" else value

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def state_path(self) -> Path:
        """Root of the ``.stackgen/`` metadata directory inside the project."""
        return self.root / self.state_dir

    @property
    def config_path(self) -> Path:
        return self.state_path / "project.json"

    @property
    def manifest_path(self) -> Path:
        """Path to the file-fingerprint manifest."""
        return self.state_path / "manifest.json"

    @property
    def pending_path(self) -> Path:
        """Path to the queue of relations waiting for their target entity."""
        return self.state_path / "pending_relations.json"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration as JSON.

        Args:
            path: Destination file. Defaults to ``<state_path>/project.json``.

        Returns:
            The path where the file was written.
        """
        target = path or self.config_path
        return write_text_atomic(target, self.model_dump_json(indent=2) + "\n")

    @classmethod
    def load(cls, root: Path, state_dir: str = ".stackgen") -> "ProjectConfig":
        """Load the configuration of the project rooted at *root*.

        Raises:
            FileNotFoundError: If *root* is not a stackgen project.
            StateFileCorrupt: If ``project.json`` is not a valid configuration.
        """
        path = Path(root) / state_dir / "project.json"
        raw = read_text(path)
        if raw is None:
            raise FileNotFoundError(f"Not a stackgen project (missing {path})")
        try:
            config = cls.model_validate_json(raw)
        except ValidationError as exc:
            raise StateFileCorrupt(path, str(exc)) from exc
        return config.model_copy(update={"root": Path(root)})

    @classmethod
    def from_env(cls, name: str, root: Path | None = None) -> "ProjectConfig":
        """Build a ``ProjectConfig`` for a new project named *name*.

        Defaults come from environment variables (all optional):
            STACKGEN_DESCRIPTION, STACKGEN_API_PREFIX.
        """
        return cls(
            name=name,
            description=os.environ.get("STACKGEN_DESCRIPTION", ""),
            api_prefix=os.environ.get("STACKGEN_API_PREFIX", "/api"),
            root=root or Path("."),
        )
