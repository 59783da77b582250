"""Garment measurement heads and dropdown options

Revision ID: 20261019_measurements
Revises: 20261019_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_measurements"
down_revision = "20261019_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "measurement_heads",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("garment_id", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(120), nullable=False),
        sa.Column("field_type", sa.String(16), nullable=False),
        sa.Column("unit", sa.String(16), nullable=True),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint(
            "field_type IN ('number', 'text', 'dropdown')", name="ck_measurement_heads_field_type",
        ),
        sa.CheckConstraint("sort_order >= 0", name="ck_measurement_heads_sort_order_non_negative"),
        sa.ForeignKeyConstraint(["garment_id"], ["garments.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("garment_id", "label", name="uq_measurement_heads_garment_label"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("measurement_heads", schema=None) as batch_op:
        batch_op.create_index("ix_measurement_heads_garment_id", ["garment_id"], unique=False)

    op.create_table(
        "measurement_options",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("measurement_head_id", sa.Integer(), nullable=False),
        sa.Column("value", sa.String(120), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["measurement_head_id"], ["measurement_heads.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("measurement_head_id", "value", name="uq_measurement_options_head_value"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("measurement_options", schema=None) as batch_op:
        batch_op.create_index(
            "ix_measurement_options_measurement_head_id", ["measurement_head_id"], unique=False,
        )


def downgrade():
    op.drop_table("measurement_options")
    op.drop_table("measurement_heads")
