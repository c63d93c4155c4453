"""Create geocode_cache table.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "geocode_cache",
        sa.Column("address_fingerprint", sa.String(64), nullable=False),
        sa.Column("original_address", sa.Text(), nullable=False),
        sa.Column("latitude", sa.Double(), nullable=False),
        sa.Column("longitude", sa.Double(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("address_fingerprint"),
    )
    op.create_index("ix_geocode_cache_updated_at", "geocode_cache", ["updated_at"])


def downgrade() -> None:
    op.drop_index("ix_geocode_cache_updated_at", table_name="geocode_cache")
    op.drop_table("geocode_cache")
