"""Alembic environment for the label store.

Online runs reuse ``config.attributes["connection"]`` when the caller
provides one; otherwise a throwaway NullPool engine is opened on the
configured URL. SQLite cannot ALTER most constraints in place, so
autogenerated operations are rendered in batch mode.
"""

from __future__ import annotations

from alembic import context
from sqlalchemy import Connection, create_engine, event, pool

from dossierctl.infrastructure.database.engine import apply_pragmas
from dossierctl.infrastructure.database.schema import metadata

config = context.config


def _migrate(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=metadata,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    """Emit the migration SQL to stdout instead of executing it."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=metadata,
        literal_binds=True,
        render_as_batch=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    shared: Connection | None = config.attributes.get("connection")
    if shared is not None:
        _migrate(shared)
        return

    url = config.get_main_option("sqlalchemy.url")
    if url is None:
        raise RuntimeError("sqlalchemy.url is not set on the Alembic config")
    engine = create_engine(url, poolclass=pool.NullPool)
    event.listen(engine, "connect", apply_pragmas)
    try:
        with engine.connect() as connection:
            _migrate(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
