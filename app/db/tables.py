"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in app/models/.
Repos convert between SQLAlchemy rows and domain dataclasses.

Progress back-references (`*_progress_id`) carry ON DELETE CASCADE, so
deleting a language progress row removes the whole subtree in one
statement.  Certificates are keyed by (user_id, series_slug) and are
removed explicitly by the certificate issuer.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.engine import Base

# --- Content hierarchy (written by the content service, read here) ---


class LanguageRow(Base):
    __tablename__ = "languages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    series_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SeriesRow(Base):
    __tablename__ = "series"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    language_slug: Mapped[str] = mapped_column(
        String(50), ForeignKey("languages.slug", ondelete="CASCADE"), nullable=False
    )
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    sections_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lessons_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    watch_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    read_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class SectionRow(Base):
    __tablename__ = "sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    language_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    series_slug: Mapped[str] = mapped_column(
        String(100), ForeignKey("series.slug", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(250), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    lessons_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    watch_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    read_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class LessonRow(Base):
    __tablename__ = "lessons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    language_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    series_slug: Mapped[str] = mapped_column(String(100), nullable=False)
    section_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(250), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    watch_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    read_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# --- Progress (one row per user per entity) ---


class LanguageProgressRow(Base):
    __tablename__ = "language_progress"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(320), nullable=False)
    language_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    completed_series_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    viewed_at: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "language_slug"),
        CheckConstraint("completed_series_count >= 0"),
    )


class SeriesProgressRow(Base):
    __tablename__ = "series_progress"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(320), nullable=False)
    language_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    series_slug: Mapped[str] = mapped_column(String(100), nullable=False)
    language_progress_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey(
            "language_progress.id", ondelete="CASCADE", deferrable=True
        ),
        nullable=False,
    )
    completed_sections_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    completed_lessons_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    completed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    viewed_at: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "series_slug"),
        CheckConstraint("completed_sections_count >= 0"),
        CheckConstraint("completed_lessons_count >= 0"),
        Index("ix_series_progress_user_language", "user_id", "language_slug"),
    )


class SectionProgressRow(Base):
    __tablename__ = "section_progress"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(320), nullable=False)
    language_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    series_slug: Mapped[str] = mapped_column(String(100), nullable=False)
    section_id: Mapped[int] = mapped_column(Integer, nullable=False)
    language_progress_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey(
            "language_progress.id", ondelete="CASCADE", deferrable=True
        ),
        nullable=False,
    )
    series_progress_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey(
            "series_progress.id", ondelete="CASCADE", deferrable=True
        ),
        nullable=False,
    )
    completed_lessons_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    completed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    viewed_at: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "section_id"),
        CheckConstraint("completed_lessons_count >= 0"),
    )


class LessonProgressRow(Base):
    __tablename__ = "lesson_progress"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(320), nullable=False)
    language_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    series_slug: Mapped[str] = mapped_column(String(100), nullable=False)
    section_id: Mapped[int] = mapped_column(Integer, nullable=False)
    lesson_id: Mapped[int] = mapped_column(Integer, nullable=False)
    language_progress_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey(
            "language_progress.id", ondelete="CASCADE", deferrable=True
        ),
        nullable=False,
    )
    series_progress_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey(
            "series_progress.id", ondelete="CASCADE", deferrable=True
        ),
        nullable=False,
    )
    section_progress_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey(
            "section_progress.id", ondelete="CASCADE", deferrable=True
        ),
        nullable=False,
    )
    completed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    viewed_at: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "lesson_id"),)


# --- Certificates ---


class CertificateRow(Base):
    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(320), nullable=False)
    language_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    series_slug: Mapped[str] = mapped_column(String(100), nullable=False)
    series_title: Mapped[str] = mapped_column(String(100), nullable=False)
    lessons: Mapped[int] = mapped_column(Integer, nullable=False)
    watch_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    read_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "series_slug"),
        Index("ix_certificates_user_language", "user_id", "language_slug"),
    )
