"""Asset metadata table (payload JSON, provisional expiry, cached download URL).

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "assetgate_assets",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("data", postgresql.JSONB(), nullable=False),
        sa.Column("expires", sa.BigInteger(), nullable=True),
        sa.Column("presigned_url", sa.Text(), nullable=True),
        sa.Column("presigned_url_expires", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assetgate_assets_expires", "assetgate_assets", ["expires"])


def downgrade() -> None:
    op.drop_index("ix_assetgate_assets_expires", table_name="assetgate_assets")
    op.drop_table("assetgate_assets")
