"""Feature collection persistence: one JSON document per content item."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, insert, select

from dossierctl.domain.features import FeatureCollection
from dossierctl.infrastructure.database.schema import feature_collections

if TYPE_CHECKING:
    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine


class FeatureRepository:
    """Encapsulates SQL for stored feature collections."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @staticmethod
    def put(conn: Connection, collection: FeatureCollection) -> None:
        """Replace the stored collection for ``collection.content_id`` wholesale."""
        conn.execute(
            delete(feature_collections).where(
                feature_collections.c.content_id == collection.content_id
            )
        )
        conn.execute(
            insert(feature_collections).values(
                content_id=collection.content_id,
                features=json.dumps(collection.features, sort_keys=True),
                modified=datetime.now(UTC).isoformat(),
            )
        )

    def get(self, content_id: str) -> FeatureCollection | None:
        stmt = select(feature_collections).where(feature_collections.c.content_id == content_id)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            return None
        return FeatureCollection(content_id=row.content_id, features=json.loads(row.features))

    def random(self) -> FeatureCollection | None:
        """One stored collection chosen by SQLite's ``random()``."""
        stmt = select(feature_collections).order_by(func.random()).limit(1)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            return None
        return FeatureCollection(content_id=row.content_id, features=json.loads(row.features))
