"""PostgreSQL implementation of ProgressRepo.

Every counter change is one UPDATE … SET col = col ± n … RETURNING, so the
read-modify-write happens inside the database under the row lock.  The
completion timestamp is decided in the same statement: inside SET, column
references see the pre-update values, so `count + 1 >= total` is the
post-increment comparison.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import (
    LanguageProgressRow,
    LessonProgressRow,
    SectionProgressRow,
    SeriesProgressRow,
)
from app.models.progress import (
    LanguageProgress,
    LessonProgress,
    SectionProgress,
    SeriesProgress,
)

# UPDATE … RETURNING must refresh rows already in the identity map.
_RETURNING_OPTS = {"populate_existing": True}


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- language ---

    async def get_language_progress(
        self, user_id: str, language_slug: str
    ) -> LanguageProgress | None:
        stmt = select(LanguageProgressRow).where(
            LanguageProgressRow.user_id == user_id,
            LanguageProgressRow.language_slug == language_slug,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_language_progress(row)

    async def list_language_progress(self, user_id: str) -> list[LanguageProgress]:
        stmt = (
            select(LanguageProgressRow)
            .where(LanguageProgressRow.user_id == user_id)
            .order_by(LanguageProgressRow.viewed_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_language_progress(r) for r in rows]

    async def add_language_progress(self, progress: LanguageProgress) -> None:
        self._session.add(
            LanguageProgressRow(
                id=progress.id,
                user_id=progress.user_id,
                language_slug=progress.language_slug,
                completed_series_count=progress.completed_series_count,
                viewed_at=progress.viewed_at,
                created_at=progress.created_at,
            )
        )
        await self._session.flush()

    async def touch_language_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> LanguageProgress:
        stmt = (
            update(LanguageProgressRow)
            .where(LanguageProgressRow.id == progress_id)
            .values(viewed_at=viewed_at)
            .returning(LanguageProgressRow)
            .execution_options(**_RETURNING_OPTS)
        )
        row = (await self._session.execute(stmt)).scalar_one()
        return _row_to_language_progress(row)

    async def change_language_completed_series(
        self, progress_id: UUID, delta: int
    ) -> LanguageProgress:
        stmt = (
            update(LanguageProgressRow)
            .where(LanguageProgressRow.id == progress_id)
            .values(
                completed_series_count=func.greatest(
                    LanguageProgressRow.completed_series_count + delta, 0
                )
            )
            .returning(LanguageProgressRow)
            .execution_options(**_RETURNING_OPTS)
        )
        row = (await self._session.execute(stmt)).scalar_one()
        return _row_to_language_progress(row)

    async def delete_language_progress(self, progress_id: UUID) -> None:
        # Series, section and lesson rows go with it via ON DELETE CASCADE.
        stmt = (
            delete(LanguageProgressRow)
            .where(LanguageProgressRow.id == progress_id)
            .returning(LanguageProgressRow.id)
        )
        (await self._session.execute(stmt)).scalar_one()

    # --- series ---

    async def get_series_progress(
        self, user_id: str, series_slug: str
    ) -> SeriesProgress | None:
        stmt = select(SeriesProgressRow).where(
            SeriesProgressRow.user_id == user_id,
            SeriesProgressRow.series_slug == series_slug,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_series_progress(row)

    async def lock_series_progress(
        self, progress_id: UUID
    ) -> SeriesProgress | None:
        stmt = (
            select(SeriesProgressRow)
            .where(SeriesProgressRow.id == progress_id)
            .with_for_update()
            .execution_options(**_RETURNING_OPTS)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_series_progress(row)

    async def add_series_progress(self, progress: SeriesProgress) -> None:
        self._session.add(
            SeriesProgressRow(
                id=progress.id,
                user_id=progress.user_id,
                language_slug=progress.language_slug,
                series_slug=progress.series_slug,
                language_progress_id=progress.language_progress_id,
                completed_sections_count=progress.completed_sections_count,
                completed_lessons_count=progress.completed_lessons_count,
                is_current=progress.is_current,
                completed_at=progress.completed_at,
                viewed_at=progress.viewed_at,
                created_at=progress.created_at,
            )
        )
        await self._session.flush()

    async def touch_series_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> SeriesProgress:
        return await self._update_series(progress_id, viewed_at=viewed_at)

    async def mark_current_series(self, progress_id: UUID) -> SeriesProgress:
        owner = (
            await self._session.execute(
                select(SeriesProgressRow.user_id, SeriesProgressRow.language_slug)
                .where(SeriesProgressRow.id == progress_id)
            )
        ).one()
        # Every series row of this user and language is locked in id order
        # before any write, so two concurrent switches queue instead of each
        # holding the row the other one is about to clear.
        await self._session.execute(
            _lock_sibling_series(owner.user_id, owner.language_slug)
        )
        stmt = (
            update(SeriesProgressRow)
            .where(
                SeriesProgressRow.user_id == owner.user_id,
                SeriesProgressRow.language_slug == owner.language_slug,
                SeriesProgressRow.id != progress_id,
                SeriesProgressRow.is_current.is_(True),
            )
            .values(is_current=False)
            .execution_options(synchronize_session="fetch")
        )
        await self._session.execute(stmt)
        return await self._update_series(progress_id, is_current=True)

    async def increment_series_completed_sections(
        self, progress_id: UUID
    ) -> SeriesProgress:
        return await self._update_series(
            progress_id,
            completed_sections_count=SeriesProgressRow.completed_sections_count + 1,
        )

    async def increment_series_completed_lessons(
        self, progress_id: UUID, total_lessons: int, now: int
    ) -> SeriesProgress:
        new_count = SeriesProgressRow.completed_lessons_count + 1
        return await self._update_series(
            progress_id,
            completed_lessons_count=new_count,
            completed_at=case(
                (
                    new_count >= total_lessons,
                    func.coalesce(SeriesProgressRow.completed_at, now),
                ),
                else_=SeriesProgressRow.completed_at,
            ),
        )

    async def remove_series_completions(
        self, progress_id: UUID, *, lessons: int, sections: int
    ) -> SeriesProgress:
        values: dict = {
            "completed_lessons_count": func.greatest(
                SeriesProgressRow.completed_lessons_count - lessons, 0
            ),
            "completed_sections_count": func.greatest(
                SeriesProgressRow.completed_sections_count - sections, 0
            ),
        }
        if lessons or sections:
            values["completed_at"] = None
        return await self._update_series(progress_id, **values)

    async def delete_series_progress(self, progress_id: UUID) -> None:
        stmt = (
            delete(SeriesProgressRow)
            .where(SeriesProgressRow.id == progress_id)
            .returning(SeriesProgressRow.id)
        )
        (await self._session.execute(stmt)).scalar_one()

    async def _update_series(self, progress_id: UUID, **values) -> SeriesProgress:
        stmt = (
            update(SeriesProgressRow)
            .where(SeriesProgressRow.id == progress_id)
            .values(**values)
            .returning(SeriesProgressRow)
            .execution_options(**_RETURNING_OPTS)
        )
        row = (await self._session.execute(stmt)).scalar_one()
        return _row_to_series_progress(row)

    # --- section ---

    async def get_section_progress(
        self, user_id: str, section_id: int
    ) -> SectionProgress | None:
        stmt = select(SectionProgressRow).where(
            SectionProgressRow.user_id == user_id,
            SectionProgressRow.section_id == section_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_section_progress(row)

    async def lock_section_progress(
        self, progress_id: UUID
    ) -> SectionProgress | None:
        stmt = (
            select(SectionProgressRow)
            .where(SectionProgressRow.id == progress_id)
            .with_for_update()
            .execution_options(**_RETURNING_OPTS)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_section_progress(row)

    async def add_section_progress(self, progress: SectionProgress) -> None:
        self._session.add(
            SectionProgressRow(
                id=progress.id,
                user_id=progress.user_id,
                language_slug=progress.language_slug,
                series_slug=progress.series_slug,
                section_id=progress.section_id,
                language_progress_id=progress.language_progress_id,
                series_progress_id=progress.series_progress_id,
                completed_lessons_count=progress.completed_lessons_count,
                completed_at=progress.completed_at,
                viewed_at=progress.viewed_at,
                created_at=progress.created_at,
            )
        )
        await self._session.flush()

    async def touch_section_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> SectionProgress:
        return await self._update_section(progress_id, viewed_at=viewed_at)

    async def increment_section_completed_lessons(
        self, progress_id: UUID, total_lessons: int, now: int
    ) -> SectionProgress:
        new_count = SectionProgressRow.completed_lessons_count + 1
        return await self._update_section(
            progress_id,
            completed_lessons_count=new_count,
            completed_at=case(
                (
                    new_count >= total_lessons,
                    func.coalesce(SectionProgressRow.completed_at, now),
                ),
                else_=SectionProgressRow.completed_at,
            ),
        )

    async def decrement_section_completed_lessons(
        self, progress_id: UUID
    ) -> SectionProgress:
        return await self._update_section(
            progress_id,
            completed_lessons_count=func.greatest(
                SectionProgressRow.completed_lessons_count - 1, 0
            ),
            completed_at=None,
        )

    async def delete_section_progress(self, progress_id: UUID) -> None:
        stmt = (
            delete(SectionProgressRow)
            .where(SectionProgressRow.id == progress_id)
            .returning(SectionProgressRow.id)
        )
        (await self._session.execute(stmt)).scalar_one()

    async def _update_section(self, progress_id: UUID, **values) -> SectionProgress:
        stmt = (
            update(SectionProgressRow)
            .where(SectionProgressRow.id == progress_id)
            .values(**values)
            .returning(SectionProgressRow)
            .execution_options(**_RETURNING_OPTS)
        )
        row = (await self._session.execute(stmt)).scalar_one()
        return _row_to_section_progress(row)

    # --- lesson ---

    async def get_lesson_progress(
        self, user_id: str, lesson_id: int
    ) -> LessonProgress | None:
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.user_id == user_id,
            LessonProgressRow.lesson_id == lesson_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_lesson_progress(row)

    async def add_lesson_progress(self, progress: LessonProgress) -> None:
        self._session.add(
            LessonProgressRow(
                id=progress.id,
                user_id=progress.user_id,
                language_slug=progress.language_slug,
                series_slug=progress.series_slug,
                section_id=progress.section_id,
                lesson_id=progress.lesson_id,
                language_progress_id=progress.language_progress_id,
                series_progress_id=progress.series_progress_id,
                section_progress_id=progress.section_progress_id,
                completed_at=progress.completed_at,
                viewed_at=progress.viewed_at,
                created_at=progress.created_at,
            )
        )
        await self._session.flush()

    async def touch_lesson_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> LessonProgress:
        stmt = (
            update(LessonProgressRow)
            .where(LessonProgressRow.id == progress_id)
            .values(viewed_at=viewed_at)
            .returning(LessonProgressRow)
            .execution_options(**_RETURNING_OPTS)
        )
        row = (await self._session.execute(stmt)).scalar_one()
        return _row_to_lesson_progress(row)

    async def complete_lesson_progress(
        self, progress_id: UUID, now: int
    ) -> LessonProgress | None:
        # The IS NULL guard makes the transition happen at most once even
        # when two requests race past the engine's "already completed" check.
        stmt = (
            update(LessonProgressRow)
            .where(
                LessonProgressRow.id == progress_id,
                LessonProgressRow.completed_at.is_(None),
            )
            .values(completed_at=now)
            .returning(LessonProgressRow)
            .execution_options(**_RETURNING_OPTS)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_lesson_progress(row)

    async def delete_lesson_progress(self, progress_id: UUID) -> None:
        stmt = (
            delete(LessonProgressRow)
            .where(LessonProgressRow.id == progress_id)
            .returning(LessonProgressRow.id)
        )
        (await self._session.execute(stmt)).scalar_one()


def _lock_sibling_series(user_id: str, language_slug: str) -> Select:
    return (
        select(SeriesProgressRow.id)
        .where(
            SeriesProgressRow.user_id == user_id,
            SeriesProgressRow.language_slug == language_slug,
        )
        .order_by(SeriesProgressRow.id)
        .with_for_update()
    )


def _row_to_language_progress(row: LanguageProgressRow) -> LanguageProgress:
    return LanguageProgress(
        id=row.id,
        user_id=row.user_id,
        language_slug=row.language_slug,
        completed_series_count=row.completed_series_count,
        viewed_at=row.viewed_at,
        created_at=row.created_at,
    )


def _row_to_series_progress(row: SeriesProgressRow) -> SeriesProgress:
    return SeriesProgress(
        id=row.id,
        user_id=row.user_id,
        language_slug=row.language_slug,
        series_slug=row.series_slug,
        language_progress_id=row.language_progress_id,
        completed_sections_count=row.completed_sections_count,
        completed_lessons_count=row.completed_lessons_count,
        is_current=row.is_current,
        completed_at=row.completed_at,
        viewed_at=row.viewed_at,
        created_at=row.created_at,
    )


def _row_to_section_progress(row: SectionProgressRow) -> SectionProgress:
    return SectionProgress(
        id=row.id,
        user_id=row.user_id,
        language_slug=row.language_slug,
        series_slug=row.series_slug,
        section_id=row.section_id,
        language_progress_id=row.language_progress_id,
        series_progress_id=row.series_progress_id,
        completed_lessons_count=row.completed_lessons_count,
        completed_at=row.completed_at,
        viewed_at=row.viewed_at,
        created_at=row.created_at,
    )


def _row_to_lesson_progress(row: LessonProgressRow) -> LessonProgress:
    return LessonProgress(
        id=row.id,
        user_id=row.user_id,
        language_slug=row.language_slug,
        series_slug=row.series_slug,
        section_id=row.section_id,
        lesson_id=row.lesson_id,
        language_progress_id=row.language_progress_id,
        series_progress_id=row.series_progress_id,
        section_progress_id=row.section_progress_id,
        completed_at=row.completed_at,
        viewed_at=row.viewed_at,
        created_at=row.created_at,
    )
