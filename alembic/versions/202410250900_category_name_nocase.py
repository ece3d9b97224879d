"""case-insensitive category names per user

Revision ID: 202410250900
Revises: 202410180900
Create Date: 2024-10-25 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202410250900"
down_revision = "202410180900"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "uq_category_user_lower_name",
        "categories",
        ["user_id", sa.text("lower(name)")],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_category_user_lower_name", table_name="categories")
