"""Create invoices table.

Revision ID: 001
Revises:
Create Date: 2025-12-04

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "invoices",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("invoice_number", sa.Integer(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "created", name="invoicestatus", native_enum=False, create_constraint=True, length=16),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    # Uniqueness only applies to live (not soft-deleted) invoices
    op.create_index(
        "uq_invoices_order_id",
        "invoices",
        ["order_id"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )
    op.create_index(
        "uq_invoices_invoice_number",
        "invoices",
        ["invoice_number"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )
    op.create_index("ix_invoices_status", "invoices", ["status"])
    op.create_index("ix_invoices_deleted_at", "invoices", ["deleted_at"])


def downgrade() -> None:
    op.drop_index("ix_invoices_deleted_at", table_name="invoices")
    op.drop_index("ix_invoices_status", table_name="invoices")
    op.drop_index("uq_invoices_invoice_number", table_name="invoices")
    op.drop_index("uq_invoices_order_id", table_name="invoices")
    op.drop_table("invoices")
