"""Add the feature_collections table.

Revision ID: 002_feature_collections
Revises: 001_baseline
Create Date: 2026-09-21
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "002_feature_collections"
down_revision: str | None = "001_baseline"
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def upgrade() -> None:
    op.create_table(
        "feature_collections",
        sa.Column("content_id", sa.Text, primary_key=True),
        sa.Column("features", sa.Text, nullable=False),
        sa.Column("modified", sa.Text, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("feature_collections")
