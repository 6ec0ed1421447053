"""public upload core: articles, upload tokens, activity log

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _is_postgresql() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def upgrade() -> None:
    op.create_table(
        "articles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("content_format", sa.String(length=24), nullable=False, server_default="plaintext"),
        sa.Column("image_url", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("image_type", sa.String(length=24), nullable=False, server_default="url"),
        sa.Column("instagram_image_url", sa.String(length=500), nullable=True),
        sa.Column("author", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=24), nullable=False, server_default="draft"),
        sa.Column("external_id", sa.String(length=64), nullable=True),
        sa.Column("source", sa.String(length=24), nullable=False, server_default="manual"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_articles_status_created_at", "articles", ["status", "created_at"], unique=False)

    op.create_table(
        "upload_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False),
        sa.Column("article_id", sa.Integer(), nullable=False),
        sa.Column("upload_types_json", sa.Text(), nullable=False, server_default='["image"]'),
        sa.Column("created_by_id", sa.String(length=64), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("uses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["article_id"], ["articles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_upload_tokens_token", "upload_tokens", ["token"], unique=True)
    op.create_index(
        "ix_upload_tokens_article_created_at",
        "upload_tokens",
        ["article_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_upload_tokens_active_expires_at",
        "upload_tokens",
        ["active", "expires_at"],
        unique=False,
    )

    if _is_postgresql():
        op.execute(
            """
            ALTER TABLE upload_tokens
            ADD CONSTRAINT ck_upload_tokens_uses_within_max
            CHECK (max_uses = 0 OR uses <= max_uses);
            """
        )

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("action", sa.String(length=40), nullable=False),
        sa.Column("resource_type", sa.String(length=40), nullable=False),
        sa.Column("resource_id", sa.String(length=64), nullable=True),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_activity_logs_resource",
        "activity_logs",
        ["resource_type", "resource_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_activity_logs_resource", table_name="activity_logs")
    op.drop_table("activity_logs")

    if _is_postgresql():
        op.execute("ALTER TABLE upload_tokens DROP CONSTRAINT IF EXISTS ck_upload_tokens_uses_within_max;")
    op.drop_index("ix_upload_tokens_active_expires_at", table_name="upload_tokens")
    op.drop_index("ix_upload_tokens_article_created_at", table_name="upload_tokens")
    op.drop_index("ix_upload_tokens_token", table_name="upload_tokens")
    op.drop_table("upload_tokens")

    op.drop_index("ix_articles_status_created_at", table_name="articles")
    op.drop_table("articles")
