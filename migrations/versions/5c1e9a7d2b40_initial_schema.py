"""initial schema

Revision ID: 5c1e9a7d2b40
Revises:
Create Date: 2026-10-19 09:12:44.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e9a7d2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the signatures and nation_cache tables."""
    op.create_table(
        "signatures",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("nation_name", sa.Text(), nullable=False),
        sa.Column("checksum", sa.Text(), nullable=False),
        sa.Column(
            "signed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("nation_name"),
    )
    op.create_index("ix_signatures_signed_at", "signatures", ["signed_at"])

    op.create_table(
        "nation_cache",
        sa.Column("nation_name", sa.Text(), nullable=False),
        sa.Column("flag_url", sa.Text(), nullable=False),
        sa.Column("region", sa.Text(), nullable=False),
        sa.Column(
            "last_updated",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("nation_name"),
    )


def downgrade() -> None:
    """Drop the signatures and nation_cache tables."""
    op.drop_table("nation_cache")
    op.drop_index("ix_signatures_signed_at", table_name="signatures")
    op.drop_table("signatures")
