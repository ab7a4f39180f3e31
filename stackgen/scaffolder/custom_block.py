"""Preservation of user-owned code across regeneration.

Every generated entity file ends with a sentinel line::

    # === STACKGEN:CUSTOM ===        (Python)
    // === STACKGEN:CUSTOM ===       (TypeScript)

Everything after the sentinel belongs to the user.  Regeneration replaces
the text before the sentinel and reattaches the text after it verbatim; the
custom part is never parsed or modified.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from stackgen.scaffolder.markers import (
    ENTITY_FILE_MARKERS,
    MARKERS,
    Marker,
    Writer,
    carry_over_injections,
    detect_line_ending,
)
from stackgen.utils import read_text, write_text_atomic

_COMMENT_PREFIXES: dict[str, str] = {
    ".py": "#",
    ".ts": "//",
    ".tsx": "//",
    ".js": "//",
    ".jsx": "//",
}


def sentinel_for(path: str | Path) -> str:
    """Return the custom-block sentinel line in the comment syntax of *path*."""
    prefix = _COMMENT_PREFIXES.get(Path(path).suffix, "#")
    return f"{prefix} {MARKERS['CUSTOM'].anchor}"


class CustomBlock:
    """Split and merge a file around its custom-block sentinel."""

    def __init__(self, sentinel: str) -> None:
        self.sentinel = sentinel

    @classmethod
    def for_path(cls, path: str | Path) -> "CustomBlock":
        return cls(sentinel_for(path))

    def split(self, contents: str | None) -> tuple[str, str]:
        """Return ``(generated, custom)``.

        The cut is at the first line equal to the sentinel; *custom* is the
        text after the sentinel line.  A missing file or a file without a
        sentinel has no custom part.
        """
        if not contents:
            return "", ""
        offset = 0
        for line in contents.splitlines(keepends=True):
            if line.strip() == self.sentinel:
                return contents[:offset], contents[offset + len(line):]
            offset += len(line)
        return contents, ""

    def merge(self, generated: str, custom: str) -> str:
        """Return *generated*, the sentinel line, then *custom* verbatim."""
        eol = detect_line_ending(generated)
        if generated and not generated.endswith("\n"):
            generated += eol
        return f"{generated}{self.sentinel}{eol}{custom}"

    def preserve(self, previous: str | None, rendered: str, markers: Iterable[Marker] = ()) -> str:
        """Combine a fresh render with the custom part of *previous*.

        Lines previously injected into the zones of *markers* are carried into
        the new generated part before merging.
        """
        rendered_generated, _ = self.split(rendered)
        previous_generated, custom = self.split(previous)
        if previous_generated:
            rendered_generated = carry_over_injections(
                previous_generated, rendered_generated, markers
            )
        return self.merge(rendered_generated, custom)


def write_generated(
    path: str | Path,
    rendered: str,
    *,
    markers: Iterable[Marker] = ENTITY_FILE_MARKERS,
    write: Writer = write_text_atomic,
) -> bool:
    """Write *rendered* to *path*, keeping the existing custom block.

    Returns:
        ``True`` if the file was written, ``False`` if its content was
        already identical.
    """
    file_path = Path(path)
    previous = read_text(file_path)
    merged = CustomBlock.for_path(file_path).preserve(previous, rendered, markers)
    if merged == previous:
        return False
    write(file_path, merged)
    return True
