"""Baseline schema: the append-only labels ledger.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-09-02

Existing databases get stamped at this revision without running it;
fresh databases are created from schema.py and stamped at head.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def upgrade() -> None:
    op.create_table(
        "labels",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("content_id1", sa.Text, nullable=False),
        sa.Column("subtopic_id1", sa.Text),
        sa.Column("content_id2", sa.Text, nullable=False),
        sa.Column("subtopic_id2", sa.Text),
        sa.Column("annotator_id", sa.Text, nullable=False),
        sa.Column("coref_value", sa.Text, nullable=False),
        sa.Column("created_at", sa.Text, nullable=False),
    )
    op.create_index("ix_labels_endpoint1", "labels", ["content_id1", "subtopic_id1"])
    op.create_index("ix_labels_endpoint2", "labels", ["content_id2", "subtopic_id2"])


def downgrade() -> None:
    op.drop_index("ix_labels_endpoint2", table_name="labels")
    op.drop_index("ix_labels_endpoint1", table_name="labels")
    op.drop_table("labels")
