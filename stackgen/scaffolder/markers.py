"""Anchor-relative, idempotent text injection.

Generated files contain anchor lines such as ``# === STACKGEN:MODELS ===``.
New lines are always spliced in immediately *before* an anchor, and an
insertion whose text is already present anywhere in the file is a no-op, so
re-running a generation command never duplicates code.

Anchors that live inside an entity's own files (``RELATIONS``,
``RELATION_HANDLERS``, ``RELATION_ROUTES``) are preceded in the template by a
fixed *zone heading* line.  Everything between the zone heading and the
anchor was injected by another entity's generation and is carried over when
the file is regenerated (see :func:`carry_over_injections`).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import NamedTuple, Optional

from stackgen.errors import AmbiguousMarker, MarkerNotFound
from stackgen.utils import read_text, write_text_atomic


class Marker(NamedTuple):
    """A named anchor line plus, for entity-file anchors, its zone heading."""

    name: str
    anchor: str
    zone: Optional[str] = None


# ---------------------------------------------------------------------------
# Marker registry
# ---------------------------------------------------------------------------

MARKERS: dict[str, Marker] = {
    m.name: m
    for m in (
        # backend/app/models/__init__.py
        Marker("MODELS", "# === STACKGEN:MODELS ==="),
        # backend/app/routes/__init__.py
        Marker("ROUTE_MODULES", "# === STACKGEN:ROUTE_MODULES ==="),
        Marker("ROUTES", "# === STACKGEN:ROUTES ==="),
        # per-entity backend files
        Marker("RELATIONS", "# === STACKGEN:RELATIONS ===", "# Relations from other entities"),
        Marker(
            "RELATION_HANDLERS",
            "# === STACKGEN:RELATION_HANDLERS ===",
            "# Relation handlers",
        ),
        Marker(
            "RELATION_ROUTES",
            "# === STACKGEN:RELATION_ROUTES ===",
            "# Relation routes",
        ),
        # frontend/src/App.tsx
        Marker("IMPORTS", "// === STACKGEN:IMPORTS ==="),
        Marker("APP_ROUTES", "{/* === STACKGEN:APP_ROUTES === */}"),
        Marker("NAV_LINKS", "{/* === STACKGEN:NAV_LINKS === */}"),
        # custom-block sentinel; the comment prefix follows the host file
        Marker("CUSTOM", "=== STACKGEN:CUSTOM ==="),
    )
}

ENTITY_FILE_MARKERS: tuple[Marker, ...] = (
    MARKERS["RELATIONS"],
    MARKERS["RELATION_HANDLERS"],
    MARKERS["RELATION_ROUTES"],
)


def get_marker(marker: Marker | str) -> Marker:
    """Resolve a marker name to its registry entry; ``Marker`` passes through."""
    if isinstance(marker, Marker):
        return marker
    try:
        return MARKERS[marker]
    except KeyError:
        raise ValueError(f"Unknown marker name: {marker!r}") from None


# ---------------------------------------------------------------------------
# Pure operations
# ---------------------------------------------------------------------------


def detect_line_ending(contents: str) -> str:
    """Return ``"\\r\\n"`` if the text uses CRLF line endings, else ``"\\n"``."""
    return "\r\n" if "\r\n" in contents else "\n"


def find_anchor(contents: str, marker: Marker | str, path: Path | None = None) -> int:
    """Return the index (in ``splitlines`` terms) of the marker's unique anchor line.

    Raises:
        MarkerNotFound: No line equals the anchor text.
        AmbiguousMarker: More than one line equals the anchor text.
    """
    resolved = get_marker(marker)
    hits = [
        i for i, line in enumerate(contents.splitlines())
        if line.strip() == resolved.anchor
    ]
    if not hits:
        raise MarkerNotFound(resolved.name, path)
    if len(hits) > 1:
        raise AmbiguousMarker(resolved.name, len(hits), path)
    return hits[0]


def insert_before(
    contents: str,
    marker: Marker | str,
    new_line: str,
    *,
    path: Path | None = None,
) -> str:
    """Insert *new_line* immediately before the marker's anchor line.

    *new_line* may span several lines; it is written with the file's own line
    ending convention.  If its text already occurs anywhere in *contents*,
    the input is returned unchanged.

    Raises:
        MarkerNotFound: The anchor line is missing.
        AmbiguousMarker: The anchor line occurs more than once.
    """
    eol = detect_line_ending(contents)
    snippet = new_line.replace("\r\n", "\n").rstrip("\n").replace("\n", eol)
    if snippet and snippet in contents:
        return contents

    index = find_anchor(contents, marker, path)
    lines = contents.splitlines(keepends=True)
    lines.insert(index, snippet + eol)
    return "".join(lines)


def carry_over_injections(
    previous: str,
    fresh: str,
    markers: Iterable[Marker | str] = ENTITY_FILE_MARKERS,
) -> str:
    """Copy lines injected into *previous* into the matching zones of *fresh*.

    For each marker with a zone heading, the lines strictly between the zone
    heading and the anchor in *previous* are re-inserted before the anchor in
    *fresh*, skipping any that the fresh render already contains.  Markers
    whose zone is missing from either text are ignored.
    """
    result = fresh
    for marker in markers:
        resolved = get_marker(marker)
        if resolved.zone is None:
            continue
        block = _zone_body(previous, resolved)
        if not block:
            continue
        fresh_body = _zone_body(result, resolved)
        if fresh_body is None:
            continue
        eol = detect_line_ending(result)
        carried = [line for line in block if line not in fresh_body]
        if carried:
            result = insert_before(result, resolved, eol.join(carried))
    return result


def _zone_body(contents: str, marker: Marker) -> list[str] | None:
    """Lines between *marker*'s zone heading and its anchor, or ``None``."""
    lines = contents.splitlines()
    anchor_index = next(
        (i for i, line in enumerate(lines) if line.strip() == marker.anchor), None
    )
    if anchor_index is None:
        return None
    for i in range(anchor_index - 1, -1, -1):
        if lines[i].strip() == marker.zone:
            return lines[i + 1:anchor_index]
    return None


# ---------------------------------------------------------------------------
# File operations
# ---------------------------------------------------------------------------


Writer = Callable[[Path, str], object]


def inject_into_file(
    path: str | Path,
    marker: Marker | str,
    new_line: str,
    *,
    write: Writer = write_text_atomic,
) -> bool:
    """Apply :func:`insert_before` to the file at *path*.

    The file is rewritten (atomically, through *write*) only when its content
    actually changed.

    Returns:
        ``True`` if the file was written, ``False`` if the line was already
        present.

    Raises:
        MarkerNotFound: The file or its anchor is missing.
        AmbiguousMarker: The anchor occurs more than once.
    """
    file_path = Path(path)
    resolved = get_marker(marker)
    contents = read_text(file_path)
    if contents is None:
        raise MarkerNotFound(resolved.name, file_path)
    updated = insert_before(contents, resolved, new_line, path=file_path)
    if updated == contents:
        return False
    write(file_path, updated)
    return True


def missing_markers(checks: Iterable[tuple[Path, Marker | str]]) -> list[str]:
    """Return a ``"NAME (path)"`` description for every absent anchor."""
    missing: list[str] = []
    cache: dict[Path, str | None] = {}
    for path, marker in checks:
        resolved = get_marker(marker)
        if path not in cache:
            cache[path] = read_text(path)
        contents = cache[path]
        if contents is None or not any(
            line.strip() == resolved.anchor for line in contents.splitlines()
        ):
            missing.append(f"{resolved.name} ({path})")
    return missing


def validate_markers(checks: Iterable[tuple[Path, Marker | str]]) -> None:
    """Check that every ``(path, marker)`` anchor exists before generating.

    Raises:
        MarkerNotFound: Listing every missing anchor at once.
    """
    missing = missing_markers(checks)
    if missing:
        raise MarkerNotFound(", ".join(missing))
