"""Scheduled maintenance end and maintenance history

Revision ID: 003
Revises: 002
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("maintenance_mode", sa.Column("end_time", sa.DateTime(), nullable=True))

    op.create_table(
        "maintenance_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("message", sa.String(500), nullable=True),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("source", sa.String(20), nullable=False, server_default="admin"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_maintenance_events_created_at"), "maintenance_events", ["created_at"])


def downgrade() -> None:
    op.drop_index(op.f("ix_maintenance_events_created_at"), table_name="maintenance_events")
    op.drop_table("maintenance_events")
    op.drop_column("maintenance_mode", "end_time")
