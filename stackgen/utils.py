"""Shared utility functions for stackgen.

Provides atomic file I/O, JSON persistence, identifier casing helpers and
Rich-based console reporting.  File writes always go through
:func:`atomic_write` so that an interrupted run never leaves a truncated file
behind for the next invocation to misread.
"""

from __future__ import annotations

import json
import keyword
import os
import re
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from stackgen.errors import IoFailure

console = Console()

# ---------------------------------------------------------------------------
# Atomic file I/O
# ---------------------------------------------------------------------------


@contextmanager
def atomic_write(path: str | Path) -> Iterator[IO[bytes]]:
    """Open a temporary file next to *path* and rename it over *path* on exit.

    The temporary file lives in the target directory so the final
    ``os.replace`` is a same-filesystem rename.  If the body raises, the
    temporary file is removed and the original file is left untouched.

    Raises:
        IoFailure: If the directory cannot be created or the write/rename
            fails.
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
        )
    except OSError as exc:
        raise IoFailure(target, "prepare", exc) from exc

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, target)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise IoFailure(target, "write", exc) from exc
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


# Bytes that are not valid UTF-8 (e.g. Latin-1 text in a custom block) are
# carried through str as lone surrogates and written back unchanged.
_TEXT_ERRORS = "surrogateescape"


def encode_text(content: str) -> bytes:
    """Encode *content* to the exact bytes :func:`read_text` decoded it from."""
    return content.encode("utf-8", _TEXT_ERRORS)


def write_text_atomic(path: str | Path, content: str) -> Path:
    """Write *content* as UTF-8 to *path* atomically, byte-for-byte.

    Line endings are written exactly as they appear in *content*.
    """
    target = Path(path)
    with atomic_write(target) as handle:
        handle.write(encode_text(content))
    return target


def read_text(path: str | Path) -> str | None:
    """Return the UTF-8 content of *path*, or ``None`` if it does not exist.

    Line endings are preserved (no universal-newline translation), and
    undecodable bytes survive a later :func:`write_text_atomic` verbatim.
    """
    file_path = Path(path)
    try:
        return file_path.read_bytes().decode("utf-8", _TEXT_ERRORS)
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise IoFailure(file_path, "read", exc) from exc


# ---------------------------------------------------------------------------
# JSON I/O
# ---------------------------------------------------------------------------


def load_json(path: str | Path, default: Any = None) -> Any:
    """Load and parse a JSON file, returning *default* when it is missing."""
    raw = read_text(path)
    if raw is None:
        return default
    return json.loads(raw)


def save_json(data: Any, path: str | Path) -> Path:
    """Save data as pretty-printed JSON, replacing the whole document atomically."""
    content = json.dumps(data, indent=2, ensure_ascii=False, default=str) + "\n"
    return write_text_atomic(path, content)


# ---------------------------------------------------------------------------
# Identifier helpers
# ---------------------------------------------------------------------------


def snake_case(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value.strip())
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def pascal_case(value: str) -> str:
    """Convert ``some-thing``, ``some_thing`` or ``someThing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", snake_case(value))
    return "".join(word.capitalize() for word in parts if word)


def camel_case(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = pascal_case(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def kebab_case(value: str) -> str:
    """Convert ``SomeThing`` or ``some_thing`` to ``some-thing``."""
    return snake_case(value).replace("_", "-")


def pluralize(word: str) -> str:
    """Pluralize an English word with the handful of rules generated code needs.

    Examples::

        pluralize("post")     -> "posts"
        pluralize("box")      -> "boxes"
        pluralize("category") -> "categories"
        pluralize("day")      -> "days"
    """
    if word.endswith(("s", "x", "ch", "sh")):
        return word + "es"
    if word.endswith("y") and not word.endswith(("ay", "ey", "oy", "uy")):
        return word[:-1] + "ies"
    return word + "s"


def python_ident(name: str) -> str:
    """Escape *name* for use as a Python identifier (``class`` -> ``class_``)."""
    if keyword.iskeyword(name):
        return f"{name}_"
    return name


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------

ACTION_STYLES: dict[str, str] = {
    "create": "green",
    "update": "cyan",
    "skip": "yellow",
    "inject": "magenta",
    "pending": "blue",
    "remove": "red",
}


def print_action(action: str, target: str, detail: str = "") -> None:
    """Print one aligned ``action path`` line, e.g. ``create backend/app/main.py``."""
    style = ACTION_STYLES.get(action, "white")
    suffix = f" [dim]({detail})[/dim]" if detail else ""
    console.print(f"  [{style}]{action:>8}[/{style}] {target}{suffix}")


def print_summary_table(data: dict[str, Any], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")
