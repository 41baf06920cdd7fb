"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17

Creates the document table that backs every collection (users, trains,
groups, messages, reminders) plus the identity provider's credentials
and auth_tokens tables.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- documents ---
    op.create_table(
        "documents",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("collection", sa.String(64), nullable=False),
        sa.Column("doc_id", sa.String(64), nullable=False),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
    )
    op.create_index("ix_documents_collection", "documents", ["collection"])

    # --- credentials ---
    op.create_table(
        "credentials",
        sa.Column("uid", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False, server_default=""),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("provider", sa.String(32), nullable=False, server_default="password"),
        sa.Column("provider_subject", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- auth_tokens ---
    op.create_table(
        "auth_tokens",
        sa.Column("token", sa.String(64), primary_key=True),
        sa.Column("uid", sa.String(36), sa.ForeignKey("credentials.uid"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_auth_tokens_uid", "auth_tokens", ["uid"])


def downgrade() -> None:
    op.drop_index("ix_auth_tokens_uid", table_name="auth_tokens")
    op.drop_table("auth_tokens")
    op.drop_table("credentials")
    op.drop_index("ix_documents_collection", table_name="documents")
    op.drop_table("documents")
