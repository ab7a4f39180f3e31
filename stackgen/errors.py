"""Exception hierarchy for the stackgen generation engine.

Every exception raised by the core derives from :class:`StackgenError` so
that the CLI layer can report failures uniformly.  The offending token, path
or marker is kept on the exception as an attribute for programmatic use.
"""

from __future__ import annotations

from pathlib import Path


class StackgenError(Exception):
    """Base class for all stackgen errors."""


class ParseError(StackgenError):
    """A field or relation specification could not be parsed."""

    def __init__(self, token: str, message: str) -> None:
        self.token = token
        super().__init__(f"{message}: '{token}'")


class MarkerError(StackgenError):
    """Base class for anchor-line problems in an aggregator file."""

    def __init__(self, marker: str, message: str, path: Path | None = None) -> None:
        self.marker = marker
        self.path = path
        location = f" in {path}" if path is not None else ""
        super().__init__(f"{message}{location}")


class MarkerNotFound(MarkerError):
    """The expected anchor line is missing (corrupted or hand-edited file)."""

    def __init__(self, marker: str, path: Path | None = None) -> None:
        super().__init__(marker, f"Marker '{marker}' not found", path)


class AmbiguousMarker(MarkerError):
    """The anchor line occurs more than once, so the insertion point is unknown."""

    def __init__(self, marker: str, count: int, path: Path | None = None) -> None:
        self.count = count
        super().__init__(marker, f"Marker '{marker}' appears {count} times", path)


class RelationTargetInconsistent(StackgenError):
    """A pending relation's entity lacks the on-disk structure needed to resolve it."""

    def __init__(self, entity: str, missing: list[str]) -> None:
        self.entity = entity
        self.missing = missing
        super().__init__(
            f"Entity '{entity}' is missing expected structure: {', '.join(missing)}"
        )


class IoFailure(StackgenError):
    """A read, write or rename failed; the current file operation was aborted."""

    def __init__(self, path: Path, operation: str, cause: OSError) -> None:
        self.path = path
        self.operation = operation
        self.cause = cause
        super().__init__(f"Failed to {operation} {path}: {cause}")


class StateFileCorrupt(StackgenError):
    """A persisted ``.stackgen`` document could not be read back."""

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Cannot read {path}: {detail}")


class UpdateConflict(StackgenError):
    """A scaffold file was edited by the user and its template also changed.

    Not a failure: it marks a decision only a human can make.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            f"{path} was modified locally and its template changed; "
            "choose overwrite or skip"
        )
