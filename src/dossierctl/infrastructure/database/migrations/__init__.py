"""Alembic wiring for the label store schema.

Configuration is built in code (there is no alembic.ini). Revision scripts
live in ``versions/`` beside this module. Callers that already hold a
connection pass it through ``Config.attributes["connection"]`` so the
migration runs inside their transaction.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

if TYPE_CHECKING:
    from sqlalchemy import Connection

MIGRATIONS_DIR = Path(__file__).parent


def build_config(db_path: Path, *, connection: Connection | None = None) -> Config:
    """Alembic config for the store at *db_path*."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    if connection is not None:
        cfg.attributes["connection"] = connection
    return cfg


def head_revision() -> str | None:
    """Newest revision shipped with this package."""
    return ScriptDirectory(str(MIGRATIONS_DIR)).get_current_head()


def current_revision(connection: Connection) -> str | None:
    """Revision the database behind *connection* is stamped at (None if unstamped)."""
    return MigrationContext.configure(connection).get_current_revision()


def stamp_head(db_path: Path) -> None:
    """Mark a freshly created store as being at :func:`head_revision`."""
    command.stamp(build_config(db_path), "head")
