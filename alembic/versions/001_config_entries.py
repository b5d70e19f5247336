"""Tiered configuration entries.

Revision ID: 001
Revises:
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "config_entries",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("scope", sa.String(32), nullable=False),
        sa.Column("scope_id", sa.String(128), nullable=False, server_default=""),
        sa.Column("key", sa.String(256), nullable=False),
        sa.Column("value", sa.Text, nullable=False),
        sa.Column("value_kind", sa.String(16), nullable=False),
        sa.Column("is_encrypted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("scope", "scope_id", "key", name="uq_config_entries_scope_key"),
    )
    op.create_index("ix_config_entries_key", "config_entries", ["key"])


def downgrade() -> None:
    op.drop_index("ix_config_entries_key", table_name="config_entries")
    op.drop_table("config_entries")
