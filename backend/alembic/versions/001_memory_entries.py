"""Create memory_entries table.

Revision ID: 001_memory_entries
Revises:
Create Date: 2026-10-17

Append-only log backing the memory assembler's sql backend.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_memory_entries"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "memory_entries",
        sa.Column(
            "seq", sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            primary_key=True, autoincrement=True,
        ),
        sa.Column("entry_id", sa.String(32), nullable=False, unique=True),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("session_id", sa.String(100), nullable=False),
        sa.Column("agent_name", sa.String(50), nullable=False),
        sa.Column("entry_type", sa.String(20), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_memory_entries_user_type_seq",
        "memory_entries", ["user_id", "entry_type", "seq"],
    )


def downgrade() -> None:
    op.drop_index("ix_memory_entries_user_type_seq", table_name="memory_entries")
    op.drop_table("memory_entries")
