"""Initial schema: postings table

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "postings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("req_id", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(), server_default=""),
        sa.Column("description", sa.Text(), server_default=""),
        sa.Column("post_date", sa.DateTime(), nullable=True),
        sa.Column("link", sa.String(), server_default=""),
        sa.Column("location", sa.String(), server_default=""),
        sa.Column("location_country", sa.String(), server_default=""),
        sa.Column("location_state", sa.String(), server_default=""),
        sa.Column("location_city", sa.String(), server_default=""),
        sa.Column("category", sa.String(), server_default=""),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("needs_review", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("req_id", name="uq_postings_req_id"),
    )
    op.create_index("ix_postings_location", "postings", ["location"])
    op.create_index("ix_postings_category", "postings", ["category"])
    op.create_index("ix_postings_deleted_at", "postings", ["deleted_at"])


def downgrade() -> None:
    op.drop_index("ix_postings_deleted_at", table_name="postings")
    op.drop_index("ix_postings_category", table_name="postings")
    op.drop_index("ix_postings_location", table_name="postings")
    op.drop_table("postings")
