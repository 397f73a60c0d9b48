"""SQLite database engine and schema via SQLAlchemy Core."""

from dossierctl.infrastructure.database.engine import create_db_engine, init_database
from dossierctl.infrastructure.database.schema import feature_collections, labels, metadata

__all__ = [
    "create_db_engine",
    "feature_collections",
    "init_database",
    "labels",
    "metadata",
]
