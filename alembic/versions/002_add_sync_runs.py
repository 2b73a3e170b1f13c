"""Add sync_runs table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "sync_runs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(), server_default="success"),
        sa.Column("categories_ok", sa.Integer(), server_default="0"),
        sa.Column("categories_failed", sa.Integer(), server_default="0"),
        sa.Column("fetched", sa.Integer(), server_default="0"),
        sa.Column("inserted", sa.Integer(), server_default="0"),
        sa.Column("updated", sa.Integer(), server_default="0"),
        sa.Column("failed_items", sa.Integer(), server_default="0"),
        sa.Column("missing_req_id", sa.Integer(), server_default="0"),
        sa.Column("geocode_misses", sa.Integer(), server_default="0"),
        sa.Column("geocode_failures", sa.Integer(), server_default="0"),
        sa.Column("deleted", sa.Integer(), server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("sync_runs")
