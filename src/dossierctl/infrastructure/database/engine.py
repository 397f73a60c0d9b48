"""SQLite engines for the label store.

Every connection is switched to WAL so queries keep reading while a label
batch commits, and waits on a locked database instead of failing at once.
Migrations open their own connections with the same pragmas.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from dossierctl.infrastructure.database.schema import metadata

SQLITE_PRAGMAS: tuple[tuple[str, str], ...] = (
    ("journal_mode", "WAL"),
    ("synchronous", "NORMAL"),
    ("busy_timeout", "5000"),
)


def apply_pragmas(dbapi_conn: Any, _record: Any) -> None:
    """``connect`` listener setting :data:`SQLITE_PRAGMAS` on a raw connection."""
    cursor = dbapi_conn.cursor()
    try:
        for name, value in SQLITE_PRAGMAS:
            cursor.execute(f"PRAGMA {name}={value}")
    finally:
        cursor.close()


def create_db_engine(db_path: Path) -> Engine:
    engine = create_engine(f"sqlite:///{db_path}")
    event.listen(engine, "connect", apply_pragmas)
    return engine


def init_database(db_path: Path) -> Engine:
    """Open (creating if needed) the store database at *db_path*.

    Makes the store directory and its ``backups/`` sibling, then creates any
    missing tables. Running it against an existing store changes nothing.
    """
    store_dir = db_path.parent
    store_dir.mkdir(parents=True, exist_ok=True)
    (store_dir / "backups").mkdir(exist_ok=True)

    engine = create_db_engine(db_path)
    metadata.create_all(engine)
    return engine
