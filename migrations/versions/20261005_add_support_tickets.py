"""add support_tickets table

Revision ID: 20261005_add_support_tickets
Revises: 20261002_add_chart_analyses
Create Date: 2026-10-05 14:10:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261005_add_support_tickets"
down_revision = "20261002_add_chart_analyses"
branch_labels = None
depends_on = None

ticket_status = sa.Enum("open", "in-progress", "closed", name="ticket_status")
ticket_priority = sa.Enum("low", "normal", "high", "urgent", name="ticket_priority")


def upgrade() -> None:
    op.create_table(
        "support_tickets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=32),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("reason", sa.String(length=100), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", ticket_status, nullable=False, server_default="open"),
        sa.Column("priority", ticket_priority, nullable=False, server_default="normal"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_support_tickets_user_id", "support_tickets", ["user_id"])
    op.create_index("ix_support_tickets_status", "support_tickets", ["status"])


def downgrade() -> None:
    op.drop_index("ix_support_tickets_status", table_name="support_tickets")
    op.drop_index("ix_support_tickets_user_id", table_name="support_tickets")
    op.drop_table("support_tickets")
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP TYPE IF EXISTS ticket_priority")
        op.execute("DROP TYPE IF EXISTS ticket_status")
