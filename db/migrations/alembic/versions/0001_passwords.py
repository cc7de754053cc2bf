"""passwords table

Revision ID: 0001_passwords
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_passwords"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Timestamps are ISO-8601 text so rows stay compatible with the previous frontend's schema.
    op.create_table(
        "passwords",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("password", sa.Text(), nullable=False),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("createdAt", sa.Text(), nullable=False),
        sa.Column("updatedAt", sa.Text(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("passwords")
