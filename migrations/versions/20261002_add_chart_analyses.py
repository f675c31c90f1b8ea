"""add chart_analyses table

Revision ID: 20261002_add_chart_analyses
Revises: 20261001_init_schema
Create Date: 2026-10-02 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261002_add_chart_analyses"
down_revision = "20261001_init_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "chart_analyses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=32),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("image_name", sa.String(length=255), nullable=False),
        sa.Column("image_size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "trading_style", sa.String(length=32), nullable=False, server_default="general"
        ),
        sa.Column("pattern", sa.String(length=255)),
        sa.Column("confidence", sa.String(length=32)),
        sa.Column("timeframe", sa.String(length=32)),
        sa.Column("trend", sa.String(length=32)),
        sa.Column("entry_point", sa.Float()),
        sa.Column("stop_loss", sa.Float()),
        sa.Column("target", sa.Float()),
        sa.Column("risk_reward", sa.String(length=32)),
        sa.Column("explanation", sa.Text()),
        sa.Column("full_analysis", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_chart_analyses_user_id", "chart_analyses", ["user_id"])
    op.create_index(
        "ix_chart_analyses_user_created",
        "chart_analyses",
        ["user_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("ix_chart_analyses_user_created", table_name="chart_analyses")
    op.drop_index("ix_chart_analyses_user_id", table_name="chart_analyses")
    op.drop_table("chart_analyses")
