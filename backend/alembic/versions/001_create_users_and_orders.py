"""Create users and orders tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema: `users` (email-keyed accounts) and `orders`
       (typed columns plus a JSONB attribute map).
How:   The UNIQUE constraint on orders.iqama is the conflict target of the
       INSERT ... ON CONFLICT upsert in OrderService.submit_order.

Rollback: downgrade() drops both tables (destructive — all data lost).
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
    op.create_table(
        "users",
        sa.Column("email", sa.String(320), nullable=False,
                  comment="Login identifier, unique per account"),
        sa.Column("password_hash", sa.String(128), nullable=False,
                  comment="bcrypt hash including its salt"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("email"),
    )

    op.create_table(
        "orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False,
                  server_default=sa.text("gen_random_uuid()"),
                  comment="System-assigned order identifier"),
        sa.Column("iqama", sa.String(64), nullable=True,
                  comment="Customer identity number; at most one order per value"),
        sa.Column("mobile", sa.String(32), nullable=True,
                  comment="Customer phone number, exact-match lookup key"),
        sa.Column("order_date", sa.TIMESTAMP(timezone=True), nullable=True,
                  comment="When the customer placed the order; listing sort key"),
        sa.Column("attributes", postgresql.JSONB(), nullable=False,
                  server_default=sa.text("'{}'::jsonb"),
                  comment="Every submitted field without a dedicated column"),
        sa.Column("revision", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("iqama", name="orders_iqama_key"),
    )

    op.create_index("ix_orders_mobile", "orders", ["mobile"])
    op.create_index("idx_orders_order_date", "orders", [sa.text("order_date DESC")])


def downgrade() -> None:
    op.drop_index("idx_orders_order_date", table_name="orders")
    op.drop_index("ix_orders_mobile", table_name="orders")
    op.drop_table("orders")
    op.drop_table("users")
