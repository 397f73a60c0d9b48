"""Locate the config file and the store a command should operate on.

Both lookups climb from the starting directory towards the filesystem root
and stop at the first hit, so any subdirectory of a project resolves to the
same store. ``DOSSIER_CONFIG`` pins the config file and disables the climb.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

CONFIG_FILENAME = "dossier.toml"
CONFIG_ENV_VAR = "DOSSIER_CONFIG"
DEFAULT_STORE_DIRNAME = ".dossier"


def _ancestors(start: Path | None) -> Iterator[Path]:
    here = (start or Path.cwd()).resolve()
    yield here
    yield from here.parents


def find_config(start: Path | None = None) -> Path | None:
    """Nearest ``dossier.toml`` at or above *start* (default: cwd).

    When ``DOSSIER_CONFIG`` is set, that file is used if it exists and no
    search happens at all.
    """
    pinned = os.environ.get(CONFIG_ENV_VAR)
    if pinned:
        path = Path(pinned)
        return path if path.is_file() else None

    for directory in _ancestors(start):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def find_store_root(start: Path | None = None, dirname: str = DEFAULT_STORE_DIRNAME) -> Path | None:
    """Nearest directory at or above *start* that already holds a *dirname* store."""
    for directory in _ancestors(start):
        if (directory / dirname).is_dir():
            return directory
    return None
