"""Create conversions table

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates the `conversions` audit table and the `conversion_stats` view.
How:   PostgreSQL features: gen_random_uuid() default, TIMESTAMP WITH TIME ZONE,
       CHECK constraint on the compression tier.

Rollback: downgrade() drops the view and the table (all log data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the conversions table, its indexes and the daily stats view."""
    op.create_table(
        "conversions",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("file_count", sa.Integer(), nullable=False),
        sa.Column("compression_level", sa.Text(), nullable=False),
        sa.Column(
            "user_id",
            sa.Text(),
            nullable=False,
            server_default=sa.text("'anonymous'"),
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "compression_level IN ('normal', 'compressed', 'ultra')",
            name="ck_conversions_compression_level",
        ),
    )

    # "Recent conversions" reads ORDER BY created_at DESC LIMIT 50
    op.create_index(
        "idx_conversions_created_at",
        "conversions",
        [sa.text("created_at DESC")],
    )
    op.create_index("idx_conversions_user_id", "conversions", ["user_id"])

    op.execute(
        """
        CREATE OR REPLACE VIEW conversion_stats AS
        SELECT
          DATE(created_at) AS date,
          COUNT(*) AS total_conversions,
          SUM(file_count) AS total_files,
          AVG(file_count) AS avg_files_per_conversion
        FROM conversions
        GROUP BY DATE(created_at)
        ORDER BY date DESC
        """
    )


def downgrade() -> None:
    """Drop the stats view, the indexes and the conversions table."""
    op.execute("DROP VIEW IF EXISTS conversion_stats")
    op.drop_index("idx_conversions_user_id", table_name="conversions")
    op.drop_index("idx_conversions_created_at", table_name="conversions")
    op.drop_table("conversions")
