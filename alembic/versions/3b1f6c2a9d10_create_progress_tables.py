"""create content, progress and certificate tables

Revision ID: 3b1f6c2a9d10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1f6c2a9d10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _progress_fk(column: str, table: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        [column], [f"{table}.id"], ondelete="CASCADE", deferrable=True
    )


def upgrade() -> None:
    # --- content (read-only for this service) ---
    op.create_table(
        "languages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("slug", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("series_count", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )
    op.create_table(
        "series",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("language_slug", sa.String(length=50), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("sections_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lessons_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "watch_time_seconds", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "read_time_seconds", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "is_published", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.ForeignKeyConstraint(
            ["language_slug"], ["languages.slug"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )
    op.create_table(
        "sections",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("language_slug", sa.String(length=50), nullable=False),
        sa.Column("series_slug", sa.String(length=100), nullable=False),
        sa.Column("title", sa.String(length=250), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("lessons_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "watch_time_seconds", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "read_time_seconds", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "is_published", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.ForeignKeyConstraint(["series_slug"], ["series.slug"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "lessons",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("language_slug", sa.String(length=50), nullable=False),
        sa.Column("series_slug", sa.String(length=100), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=250), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column(
            "watch_time_seconds", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "read_time_seconds", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "is_published", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- progress ---
    op.create_table(
        "language_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(length=320), nullable=False),
        sa.Column("language_slug", sa.String(length=50), nullable=False),
        sa.Column(
            "completed_series_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("viewed_at", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.CheckConstraint("completed_series_count >= 0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "language_slug"),
    )
    op.create_table(
        "series_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(length=320), nullable=False),
        sa.Column("language_slug", sa.String(length=50), nullable=False),
        sa.Column("series_slug", sa.String(length=100), nullable=False),
        sa.Column(
            "language_progress_id", postgresql.UUID(as_uuid=True), nullable=False
        ),
        sa.Column(
            "completed_sections_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "completed_lessons_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.Column("viewed_at", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.CheckConstraint("completed_sections_count >= 0"),
        sa.CheckConstraint("completed_lessons_count >= 0"),
        _progress_fk("language_progress_id", "language_progress"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "series_slug"),
    )
    op.create_index(
        "ix_series_progress_user_language",
        "series_progress",
        ["user_id", "language_slug"],
    )
    op.create_table(
        "section_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(length=320), nullable=False),
        sa.Column("language_slug", sa.String(length=50), nullable=False),
        sa.Column("series_slug", sa.String(length=100), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column(
            "language_progress_id", postgresql.UUID(as_uuid=True), nullable=False
        ),
        sa.Column("series_progress_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "completed_lessons_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.Column("viewed_at", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.CheckConstraint("completed_lessons_count >= 0"),
        _progress_fk("language_progress_id", "language_progress"),
        _progress_fk("series_progress_id", "series_progress"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "section_id"),
    )
    op.create_table(
        "lesson_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(length=320), nullable=False),
        sa.Column("language_slug", sa.String(length=50), nullable=False),
        sa.Column("series_slug", sa.String(length=100), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("lesson_id", sa.Integer(), nullable=False),
        sa.Column(
            "language_progress_id", postgresql.UUID(as_uuid=True), nullable=False
        ),
        sa.Column("series_progress_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("section_progress_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.Column("viewed_at", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
        _progress_fk("language_progress_id", "language_progress"),
        _progress_fk("series_progress_id", "series_progress"),
        _progress_fk("section_progress_id", "section_progress"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "lesson_id"),
    )

    # --- certificates ---
    op.create_table(
        "certificates",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(length=320), nullable=False),
        sa.Column("language_slug", sa.String(length=50), nullable=False),
        sa.Column("series_slug", sa.String(length=100), nullable=False),
        sa.Column("series_title", sa.String(length=100), nullable=False),
        sa.Column("lessons", sa.Integer(), nullable=False),
        sa.Column("watch_time_seconds", sa.Integer(), nullable=False),
        sa.Column("read_time_seconds", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "series_slug"),
    )
    op.create_index(
        "ix_certificates_user_language",
        "certificates",
        ["user_id", "language_slug"],
    )


def downgrade() -> None:
    op.drop_index("ix_certificates_user_language", table_name="certificates")
    op.drop_table("certificates")
    op.drop_table("lesson_progress")
    op.drop_table("section_progress")
    op.drop_index("ix_series_progress_user_language", table_name="series_progress")
    op.drop_table("series_progress")
    op.drop_table("language_progress")
    op.drop_table("lessons")
    op.drop_table("sections")
    op.drop_table("series")
    op.drop_table("languages")
