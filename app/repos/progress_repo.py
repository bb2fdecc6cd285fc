"""Progress store: one table per hierarchy level.

Counter mutations are expressed as increments/decrements ("+1 on this
row") rather than "write this value", so the PostgreSQL implementation can
run each one as a single UPDATE … RETURNING and let row locks serialize
concurrent completions.  The same contract is honoured by the in-memory
implementation used in dev and tests.

Update methods raise NotFoundError when the target row is gone.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.progress import (
    LanguageProgress,
    LessonProgress,
    SectionProgress,
    SeriesProgress,
)
from app.services.errors import ConflictError, NotFoundError


class ProgressRepo(Protocol):
    # --- language ---
    async def get_language_progress(
        self, user_id: str, language_slug: str
    ) -> LanguageProgress | None: ...
    async def list_language_progress(self, user_id: str) -> list[LanguageProgress]: ...
    async def add_language_progress(self, progress: LanguageProgress) -> None: ...
    async def touch_language_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> LanguageProgress: ...
    async def change_language_completed_series(
        self, progress_id: UUID, delta: int
    ) -> LanguageProgress: ...
    async def delete_language_progress(self, progress_id: UUID) -> None: ...

    # --- series ---
    async def get_series_progress(
        self, user_id: str, series_slug: str
    ) -> SeriesProgress | None: ...
    async def lock_series_progress(
        self, progress_id: UUID
    ) -> SeriesProgress | None: ...
    async def add_series_progress(self, progress: SeriesProgress) -> None: ...
    async def touch_series_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> SeriesProgress: ...
    async def mark_current_series(self, progress_id: UUID) -> SeriesProgress: ...
    async def increment_series_completed_sections(
        self, progress_id: UUID
    ) -> SeriesProgress: ...
    async def increment_series_completed_lessons(
        self, progress_id: UUID, total_lessons: int, now: int
    ) -> SeriesProgress: ...
    async def remove_series_completions(
        self, progress_id: UUID, *, lessons: int, sections: int
    ) -> SeriesProgress: ...
    async def delete_series_progress(self, progress_id: UUID) -> None: ...

    # --- section ---
    async def get_section_progress(
        self, user_id: str, section_id: int
    ) -> SectionProgress | None: ...
    async def lock_section_progress(
        self, progress_id: UUID
    ) -> SectionProgress | None: ...
    async def add_section_progress(self, progress: SectionProgress) -> None: ...
    async def touch_section_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> SectionProgress: ...
    async def increment_section_completed_lessons(
        self, progress_id: UUID, total_lessons: int, now: int
    ) -> SectionProgress: ...
    async def decrement_section_completed_lessons(
        self, progress_id: UUID
    ) -> SectionProgress: ...
    async def delete_section_progress(self, progress_id: UUID) -> None: ...

    # --- lesson ---
    async def get_lesson_progress(
        self, user_id: str, lesson_id: int
    ) -> LessonProgress | None: ...
    async def add_lesson_progress(self, progress: LessonProgress) -> None: ...
    async def touch_lesson_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> LessonProgress: ...
    async def complete_lesson_progress(
        self, progress_id: UUID, now: int
    ) -> LessonProgress | None: ...
    async def delete_lesson_progress(self, progress_id: UUID) -> None: ...


_ProgressState = tuple[
    dict[UUID, LanguageProgress],
    dict[UUID, SeriesProgress],
    dict[UUID, SectionProgress],
    dict[UUID, LessonProgress],
]


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._languages: dict[UUID, LanguageProgress] = {}
        self._series: dict[UUID, SeriesProgress] = {}
        self._sections: dict[UUID, SectionProgress] = {}
        self._lessons: dict[UUID, LessonProgress] = {}

    # --- transaction support (used by InMemoryUnitOfWork) ---

    def snapshot(self) -> _ProgressState:
        # Rows are frozen dataclasses, so copying the dicts is a full snapshot.
        return (
            dict(self._languages),
            dict(self._series),
            dict(self._sections),
            dict(self._lessons),
        )

    def restore(self, state: _ProgressState) -> None:
        self._languages, self._series, self._sections, self._lessons = (
            dict(table) for table in state
        )

    def clear(self) -> None:
        self._languages.clear()
        self._series.clear()
        self._sections.clear()
        self._lessons.clear()

    # --- language ---

    async def get_language_progress(
        self, user_id: str, language_slug: str
    ) -> LanguageProgress | None:
        for p in self._languages.values():
            if p.user_id == user_id and p.language_slug == language_slug:
                return p
        return None

    async def list_language_progress(self, user_id: str) -> list[LanguageProgress]:
        rows = [p for p in self._languages.values() if p.user_id == user_id]
        return sorted(rows, key=lambda p: p.viewed_at, reverse=True)

    async def add_language_progress(self, progress: LanguageProgress) -> None:
        if await self.get_language_progress(progress.user_id, progress.language_slug):
            raise ConflictError("language progress already exists")
        self._languages[progress.id] = progress

    async def touch_language_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> LanguageProgress:
        updated = replace(self._language(progress_id), viewed_at=viewed_at)
        self._languages[progress_id] = updated
        return updated

    async def change_language_completed_series(
        self, progress_id: UUID, delta: int
    ) -> LanguageProgress:
        p = self._language(progress_id)
        updated = replace(
            p, completed_series_count=max(p.completed_series_count + delta, 0)
        )
        self._languages[progress_id] = updated
        return updated

    async def delete_language_progress(self, progress_id: UUID) -> None:
        self._language(progress_id)
        del self._languages[progress_id]
        self._cascade("language_progress_id", progress_id)

    # --- series ---

    async def get_series_progress(
        self, user_id: str, series_slug: str
    ) -> SeriesProgress | None:
        for p in self._series.values():
            if p.user_id == user_id and p.series_slug == series_slug:
                return p
        return None

    async def lock_series_progress(
        self, progress_id: UUID
    ) -> SeriesProgress | None:
        return self._series.get(progress_id)

    async def add_series_progress(self, progress: SeriesProgress) -> None:
        if progress.language_progress_id not in self._languages:
            raise NotFoundError("language progress not found")
        if await self.get_series_progress(progress.user_id, progress.series_slug):
            raise ConflictError("series progress already exists")
        self._series[progress.id] = progress

    async def touch_series_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> SeriesProgress:
        updated = replace(self._one_series(progress_id), viewed_at=viewed_at)
        self._series[progress_id] = updated
        return updated

    async def mark_current_series(self, progress_id: UUID) -> SeriesProgress:
        target = self._one_series(progress_id)
        for other in list(self._series.values()):
            if (
                other.id != progress_id
                and other.user_id == target.user_id
                and other.language_slug == target.language_slug
                and other.is_current
            ):
                self._series[other.id] = replace(other, is_current=False)
        updated = replace(target, is_current=True)
        self._series[progress_id] = updated
        return updated

    async def increment_series_completed_sections(
        self, progress_id: UUID
    ) -> SeriesProgress:
        p = self._one_series(progress_id)
        updated = replace(p, completed_sections_count=p.completed_sections_count + 1)
        self._series[progress_id] = updated
        return updated

    async def increment_series_completed_lessons(
        self, progress_id: UUID, total_lessons: int, now: int
    ) -> SeriesProgress:
        p = self._one_series(progress_id)
        count = p.completed_lessons_count + 1
        completed_at = p.completed_at
        if count >= total_lessons:
            completed_at = completed_at or now
        updated = replace(p, completed_lessons_count=count, completed_at=completed_at)
        self._series[progress_id] = updated
        return updated

    async def remove_series_completions(
        self, progress_id: UUID, *, lessons: int, sections: int
    ) -> SeriesProgress:
        p = self._one_series(progress_id)
        updated = replace(
            p,
            completed_lessons_count=max(p.completed_lessons_count - lessons, 0),
            completed_sections_count=max(p.completed_sections_count - sections, 0),
            completed_at=None if lessons or sections else p.completed_at,
        )
        self._series[progress_id] = updated
        return updated

    async def delete_series_progress(self, progress_id: UUID) -> None:
        self._one_series(progress_id)
        del self._series[progress_id]
        self._cascade("series_progress_id", progress_id)

    # --- section ---

    async def get_section_progress(
        self, user_id: str, section_id: int
    ) -> SectionProgress | None:
        for p in self._sections.values():
            if p.user_id == user_id and p.section_id == section_id:
                return p
        return None

    async def lock_section_progress(
        self, progress_id: UUID
    ) -> SectionProgress | None:
        return self._sections.get(progress_id)

    async def add_section_progress(self, progress: SectionProgress) -> None:
        if progress.series_progress_id not in self._series:
            raise NotFoundError("series progress not found")
        if await self.get_section_progress(progress.user_id, progress.section_id):
            raise ConflictError("section progress already exists")
        self._sections[progress.id] = progress

    async def touch_section_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> SectionProgress:
        updated = replace(self._section(progress_id), viewed_at=viewed_at)
        self._sections[progress_id] = updated
        return updated

    async def increment_section_completed_lessons(
        self, progress_id: UUID, total_lessons: int, now: int
    ) -> SectionProgress:
        p = self._section(progress_id)
        count = p.completed_lessons_count + 1
        completed_at = p.completed_at
        if count >= total_lessons:
            completed_at = completed_at or now
        updated = replace(p, completed_lessons_count=count, completed_at=completed_at)
        self._sections[progress_id] = updated
        return updated

    async def decrement_section_completed_lessons(
        self, progress_id: UUID
    ) -> SectionProgress:
        p = self._section(progress_id)
        updated = replace(
            p,
            completed_lessons_count=max(p.completed_lessons_count - 1, 0),
            completed_at=None,
        )
        self._sections[progress_id] = updated
        return updated

    async def delete_section_progress(self, progress_id: UUID) -> None:
        self._section(progress_id)
        del self._sections[progress_id]
        self._cascade("section_progress_id", progress_id)

    # --- lesson ---

    async def get_lesson_progress(
        self, user_id: str, lesson_id: int
    ) -> LessonProgress | None:
        for p in self._lessons.values():
            if p.user_id == user_id and p.lesson_id == lesson_id:
                return p
        return None

    async def add_lesson_progress(self, progress: LessonProgress) -> None:
        if progress.section_progress_id not in self._sections:
            raise NotFoundError("section progress not found")
        if await self.get_lesson_progress(progress.user_id, progress.lesson_id):
            raise ConflictError("lesson progress already exists")
        self._lessons[progress.id] = progress

    async def touch_lesson_progress(
        self, progress_id: UUID, viewed_at: int
    ) -> LessonProgress:
        updated = replace(self._lesson(progress_id), viewed_at=viewed_at)
        self._lessons[progress_id] = updated
        return updated

    async def complete_lesson_progress(
        self, progress_id: UUID, now: int
    ) -> LessonProgress | None:
        p = self._lesson(progress_id)
        if p.completed_at is not None:
            return None
        updated = replace(p, completed_at=now)
        self._lessons[progress_id] = updated
        return updated

    async def delete_lesson_progress(self, progress_id: UUID) -> None:
        self._lesson(progress_id)
        del self._lessons[progress_id]

    # --- helpers ---

    def _language(self, progress_id: UUID) -> LanguageProgress:
        p = self._languages.get(progress_id)
        if p is None:
            raise NotFoundError("language progress not found")
        return p

    def _one_series(self, progress_id: UUID) -> SeriesProgress:
        p = self._series.get(progress_id)
        if p is None:
            raise NotFoundError("series progress not found")
        return p

    def _section(self, progress_id: UUID) -> SectionProgress:
        p = self._sections.get(progress_id)
        if p is None:
            raise NotFoundError("section progress not found")
        return p

    def _lesson(self, progress_id: UUID) -> LessonProgress:
        p = self._lessons.get(progress_id)
        if p is None:
            raise NotFoundError("lesson progress not found")
        return p

    def _cascade(self, back_reference: str, progress_id: UUID) -> None:
        """Mirror ON DELETE CASCADE on the back-reference foreign keys."""
        for table in (self._series, self._sections, self._lessons):
            doomed = [
                row_id
                for row_id, row in table.items()
                if getattr(row, back_reference, None) == progress_id
            ]
            for row_id in doomed:
                del table[row_id]
