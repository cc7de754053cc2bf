from __future__ import annotations

import sqlalchemy as sa


metadata = sa.MetaData()

# Column names are camelCase to stay readable by databases created by the previous frontend.
passwords = sa.Table(
    "passwords",
    metadata,
    sa.Column("id", sa.Text(), primary_key=True),
    sa.Column("title", sa.Text(), nullable=False),
    sa.Column("username", sa.Text(), nullable=False),
    # Always the ciphertext envelope, never the plaintext secret.
    sa.Column("password", sa.Text(), nullable=False),
    sa.Column("website", sa.Text(), nullable=True),
    sa.Column("notes", sa.Text(), nullable=True),
    sa.Column("createdAt", sa.Text(), nullable=False),
    sa.Column("updatedAt", sa.Text(), nullable=False),
)
