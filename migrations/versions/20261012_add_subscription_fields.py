"""add subscription fields to users

Revision ID: 20261012_add_subscription_fields
Revises: 20261005_add_support_tickets
Create Date: 2026-10-12 11:45:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261012_add_subscription_fields"
down_revision = "20261005_add_support_tickets"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.add_column(sa.Column("stripe_customer_id", sa.String(length=64)))
        batch_op.add_column(sa.Column("stripe_subscription_id", sa.String(length=64)))
        batch_op.add_column(sa.Column("subscription_status", sa.String(length=32)))
        batch_op.add_column(
            sa.Column("subscription_period_end", sa.DateTime(timezone=True))
        )
        batch_op.create_unique_constraint(
            "uq_users_stripe_customer_id", ["stripe_customer_id"]
        )
        batch_op.create_unique_constraint(
            "uq_users_stripe_subscription_id", ["stripe_subscription_id"]
        )


def downgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_constraint("uq_users_stripe_subscription_id", type_="unique")
        batch_op.drop_constraint("uq_users_stripe_customer_id", type_="unique")
        batch_op.drop_column("subscription_period_end")
        batch_op.drop_column("subscription_status")
        batch_op.drop_column("stripe_subscription_id")
        batch_op.drop_column("stripe_customer_id")
