"""SQLAlchemy Core table definitions for the dossier label store.

Labels are an append-only ledger: rows are inserted, never updated or
deleted. ``labels.id`` is the ledger sequence used for replay.
"""

from __future__ import annotations

from sqlalchemy import Column, Index, Integer, MetaData, Table, Text

metadata = MetaData()

labels = Table(
    "labels",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Endpoints stored in canonical node order (smaller sort key first).
    Column("content_id1", Text, nullable=False),
    Column("subtopic_id1", Text),  # NULL = whole-item node
    Column("content_id2", Text, nullable=False),
    Column("subtopic_id2", Text),
    Column("annotator_id", Text, nullable=False),
    Column("coref_value", Text, nullable=False),  # positive | negative
    Column("created_at", Text, nullable=False),  # ISO-8601, UTC
)

feature_collections = Table(
    "feature_collections",
    metadata,
    Column("content_id", Text, primary_key=True),
    Column("features", Text, nullable=False),  # JSON object
    Column("modified", Text, nullable=False),
)

# ---------------------------------------------------------------------------
# Indexes for endpoint lookups
# ---------------------------------------------------------------------------

Index("ix_labels_endpoint1", labels.c.content_id1, labels.c.subtopic_id1)
Index("ix_labels_endpoint2", labels.c.content_id2, labels.c.subtopic_id2)
