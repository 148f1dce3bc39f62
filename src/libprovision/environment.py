"""Search-path registration and working tree cleanup."""

from __future__ import annotations

import os
import shlex
import shutil
from collections.abc import Mapping
from pathlib import Path

from libprovision.errors import CleanupError, RegistrationError


def append_search_path(current: str | None, directory: str | Path) -> str:
    """Return ``current`` with ``directory`` appended unless already present.

    Existing entries keep their order; empty segments are dropped.
    """
    entry = str(directory)
    if not entry or os.pathsep in entry:
        raise RegistrationError(
            "Directory cannot be represented as a single search path entry.",
            context={"directory": entry},
        )
    entries = [segment for segment in (current or "").split(os.pathsep) if segment]
    wanted = _normalize(entry)
    if any(_normalize(segment) == wanted for segment in entries):
        return os.pathsep.join(entries)
    entries.append(entry)
    return os.pathsep.join(entries)


def register_search_path(
    environ: Mapping[str, str],
    variable: str,
    directory: str | Path,
) -> dict[str, str]:
    """Return a copy of ``environ`` with ``directory`` registered in ``variable``."""
    updated = dict(environ)
    updated[variable] = append_search_path(environ.get(variable), directory)
    return updated


def export_line(variable: str, value: str) -> str:
    """Render a POSIX shell line the caller can eval to persist the registration."""
    return f"export {variable}={shlex.quote(value)}"


def remove_working_tree(path: str | Path) -> bool:
    """Recursively delete ``path``.

    Returns ``False`` when there was nothing to remove. A tree that exists but
    cannot be removed raises :class:`CleanupError`.
    """
    tree = Path(path)
    if not tree.exists() and not tree.is_symlink():
        return False
    try:
        if tree.is_dir() and not tree.is_symlink():
            shutil.rmtree(tree)
        else:
            tree.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise CleanupError(
            "Working tree could not be removed.",
            hint="Check permissions and remove the directory manually.",
            context={"operation": "cleanup", "path": str(tree), "error": str(exc)},
        ) from exc
    return True


def _normalize(entry: str) -> str:
    stripped = entry.rstrip("/")
    return stripped or entry
