"""Inventory batches with expiry dates

Revision ID: 20261019_inventory_batches
Revises: 20261019_initial_schema
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_inventory_batches"
down_revision = "20261019_initial_schema"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "inventory_batches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("inventory_id", sa.Integer(), nullable=False),
        sa.Column("batch_number", sa.String(length=64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_batch_quantity_non_negative"),
        sa.ForeignKeyConstraint(["inventory_id"], ["inventory_records.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_batches_inventory_id", "inventory_batches", ["inventory_id"], unique=False)
    op.create_index("ix_inventory_batches_expiry_date", "inventory_batches", ["expiry_date"], unique=False)


def downgrade():
    op.drop_index("ix_inventory_batches_expiry_date", table_name="inventory_batches")
    op.drop_index("ix_inventory_batches_inventory_id", table_name="inventory_batches")
    op.drop_table("inventory_batches")
