"""Append-only label ledger.

Rows are only ever inserted. Endpoints are stored canonically so a
label and its mirror image are the same row shape; ``id`` records the
append order used to replay the ledger into the constraint graph.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, insert, or_, select

from dossierctl.domain.labels import Label
from dossierctl.domain.nodes import Node, make_node
from dossierctl.domain.types import CorefValue
from dossierctl.infrastructure.database.schema import labels

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement, Connection
    from sqlalchemy.engine import Engine


def label_to_row(label: Label) -> dict[str, Any]:
    """Flatten a label into ``labels`` column values (canonical order)."""
    canonical = label.canonical()
    return {
        "content_id1": canonical.node_a.content_id,
        "subtopic_id1": canonical.node_a.subtopic_id,
        "content_id2": canonical.node_b.content_id,
        "subtopic_id2": canonical.node_b.subtopic_id,
        "annotator_id": canonical.annotator_id,
        "coref_value": str(canonical.coref_value),
        "created_at": canonical.created_at.isoformat(),
    }


def row_to_label(row: Any) -> Label:
    return Label(
        node_a=make_node(row.content_id1, row.subtopic_id1),
        node_b=make_node(row.content_id2, row.subtopic_id2),
        annotator_id=row.annotator_id,
        coref_value=CorefValue(row.coref_value),
        created_at=datetime.fromisoformat(row.created_at),
        seq=row.id,
    )


def _endpoint_matches(content_col: Any, subtopic_col: Any, node: Node) -> ColumnElement[bool]:
    if node.subtopic_id is None:
        return and_(content_col == node.content_id, subtopic_col.is_(None))
    return and_(content_col == node.content_id, subtopic_col == node.subtopic_id)


def touching_sort_key(label: Label) -> tuple[Any, ...]:
    """Destination node, creation time, annotator, then ledger order."""
    return (label.node_b.sort_key(), label.created_at, label.annotator_id, label.seq or 0)


class LabelRepository:
    """Encapsulates SQL for the labels ledger."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @staticmethod
    def append(conn: Connection, label: Label) -> int:
        """Insert *label* within the caller's transaction; returns its sequence id."""
        result = conn.execute(insert(labels).values(**label_to_row(label)))
        return int(result.inserted_primary_key[0])

    def count(self) -> int:
        with self._engine.connect() as conn:
            return int(conn.execute(select(func.count(labels.c.id))).scalar_one() or 0)

    def labels_touching(self, node: Node) -> list[Label]:
        """Every label with *node* as an endpoint, oriented away from *node*.

        Whole-item and sub-topic endpoints are matched exactly. Ordered by
        destination node, ``created_at`` and ``annotator_id``.
        """
        stmt = select(labels).where(
            or_(
                _endpoint_matches(labels.c.content_id1, labels.c.subtopic_id1, node),
                _endpoint_matches(labels.c.content_id2, labels.c.subtopic_id2, node),
            )
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        found = [row_to_label(row).oriented(node) for row in rows]
        found.sort(key=touching_sort_key)
        return found

    def iter_labels(self) -> Iterator[Label]:
        """Stream the whole ledger in append order."""
        stmt = select(labels).order_by(labels.c.id)
        with self._engine.connect() as conn:
            for row in conn.execute(stmt):
                yield row_to_label(row)
