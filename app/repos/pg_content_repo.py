"""PostgreSQL implementation of ContentReader."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import LanguageRow, LessonRow, SectionRow, SeriesRow
from app.models.content import Language, Lesson, Section, Series


class PgContentRepo:
    """Satisfies the ContentReader Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_language(self, language_slug: str) -> Language | None:
        stmt = select(LanguageRow).where(LanguageRow.slug == language_slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_language(row)

    async def get_series(self, language_slug: str, series_slug: str) -> Series | None:
        stmt = select(SeriesRow).where(
            SeriesRow.slug == series_slug,
            SeriesRow.language_slug == language_slug,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_series(row)

    async def get_section(
        self, language_slug: str, series_slug: str, section_id: int
    ) -> Section | None:
        stmt = select(SectionRow).where(
            SectionRow.id == section_id,
            SectionRow.series_slug == series_slug,
            SectionRow.language_slug == language_slug,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_section(row)

    async def get_lesson(
        self, language_slug: str, series_slug: str, section_id: int, lesson_id: int
    ) -> Lesson | None:
        stmt = select(LessonRow).where(
            LessonRow.id == lesson_id,
            LessonRow.section_id == section_id,
            LessonRow.series_slug == series_slug,
            LessonRow.language_slug == language_slug,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_lesson(row)


def _row_to_language(row: LanguageRow) -> Language:
    return Language(
        id=row.id,
        slug=row.slug,
        name=row.name,
        series_count=row.series_count,
    )


def _row_to_series(row: SeriesRow) -> Series:
    return Series(
        id=row.id,
        language_slug=row.language_slug,
        slug=row.slug,
        title=row.title,
        sections_count=row.sections_count,
        lessons_count=row.lessons_count,
        watch_time_seconds=row.watch_time_seconds,
        read_time_seconds=row.read_time_seconds,
        is_published=row.is_published,
    )


def _row_to_section(row: SectionRow) -> Section:
    return Section(
        id=row.id,
        language_slug=row.language_slug,
        series_slug=row.series_slug,
        title=row.title,
        position=row.position,
        lessons_count=row.lessons_count,
        watch_time_seconds=row.watch_time_seconds,
        read_time_seconds=row.read_time_seconds,
        is_published=row.is_published,
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        language_slug=row.language_slug,
        series_slug=row.series_slug,
        section_id=row.section_id,
        title=row.title,
        position=row.position,
        watch_time_seconds=row.watch_time_seconds,
        read_time_seconds=row.read_time_seconds,
        is_published=row.is_published,
    )
