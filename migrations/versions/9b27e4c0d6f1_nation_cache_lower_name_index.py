"""index lower(nation_name) on nation_cache

Revision ID: 9b27e4c0d6f1
Revises: 5c1e9a7d2b40
Create Date: 2026-10-19 14:03:27.551902

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "9b27e4c0d6f1"
down_revision: Union[str, Sequence[str], None] = "5c1e9a7d2b40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Index the lower-cased nation name for case-insensitive lookups."""
    op.create_index(
        "ix_nation_cache_name_lower",
        "nation_cache",
        [sa.text("lower(nation_name)")],
    )


def downgrade() -> None:
    """Drop the lower-cased nation name index."""
    op.drop_index("ix_nation_cache_name_lower", table_name="nation_cache")
