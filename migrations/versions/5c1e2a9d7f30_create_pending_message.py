"""create pending message queue

Revision ID: 5c1e2a9d7f30
Revises:
Create Date: 2026-10-17 09:12:44.512391

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e2a9d7f30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the local pending-message table."""
    op.create_table(
        "pending_message",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("room_id", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("users", sa.Text(), nullable=False),
        sa.Column("user_image", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("image_data", sa.JSON(), nullable=True),
        sa.Column("uploaded_image_url", sa.Text(), nullable=True),
        sa.Column("reply_to", sa.JSON(), nullable=True),
        sa.Column("client_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.VARCHAR(length=20), nullable=False),
        sa.Column("retry_count", sa.SmallInteger(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_pending_message_client_timestamp",
        "pending_message",
        ["client_timestamp"],
    )
    op.create_index(
        "ix_pending_message_room_ts",
        "pending_message",
        ["room_id", "client_timestamp"],
    )


def downgrade() -> None:
    """Drop the local pending-message table."""
    op.drop_index("ix_pending_message_room_ts", table_name="pending_message")
    op.drop_index("ix_pending_message_client_timestamp", table_name="pending_message")
    op.drop_table("pending_message")
