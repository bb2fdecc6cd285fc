from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class LanguageProgress:
    """Root of a user's progress tree for one language."""

    id: UUID
    user_id: str
    language_slug: str
    viewed_at: int
    created_at: int
    completed_series_count: int = 0

    @staticmethod
    def new(*, user_id: str, language_slug: str, now: int) -> LanguageProgress:
        return LanguageProgress(
            id=uuid4(),
            user_id=user_id,
            language_slug=language_slug,
            viewed_at=now,
            created_at=now,
        )


@dataclass(frozen=True, slots=True)
class SeriesProgress:
    id: UUID
    user_id: str
    language_slug: str
    series_slug: str
    language_progress_id: UUID
    viewed_at: int
    created_at: int
    completed_sections_count: int = 0
    completed_lessons_count: int = 0
    is_current: bool = True
    completed_at: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @staticmethod
    def new(
        *,
        user_id: str,
        language_slug: str,
        series_slug: str,
        language_progress_id: UUID,
        now: int,
    ) -> SeriesProgress:
        return SeriesProgress(
            id=uuid4(),
            user_id=user_id,
            language_slug=language_slug,
            series_slug=series_slug,
            language_progress_id=language_progress_id,
            viewed_at=now,
            created_at=now,
        )


@dataclass(frozen=True, slots=True)
class SectionProgress:
    id: UUID
    user_id: str
    language_slug: str
    series_slug: str
    section_id: int
    language_progress_id: UUID
    series_progress_id: UUID
    viewed_at: int
    created_at: int
    completed_lessons_count: int = 0
    completed_at: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @staticmethod
    def new(
        *,
        user_id: str,
        series: SeriesProgress,
        section_id: int,
        now: int,
    ) -> SectionProgress:
        return SectionProgress(
            id=uuid4(),
            user_id=user_id,
            language_slug=series.language_slug,
            series_slug=series.series_slug,
            section_id=section_id,
            language_progress_id=series.language_progress_id,
            series_progress_id=series.id,
            viewed_at=now,
            created_at=now,
        )


@dataclass(frozen=True, slots=True)
class LessonProgress:
    id: UUID
    user_id: str
    language_slug: str
    series_slug: str
    section_id: int
    lesson_id: int
    language_progress_id: UUID
    series_progress_id: UUID
    section_progress_id: UUID
    viewed_at: int
    created_at: int
    completed_at: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @staticmethod
    def new(
        *,
        user_id: str,
        section: SectionProgress,
        lesson_id: int,
        now: int,
    ) -> LessonProgress:
        # Back-references are copied from the parent row so the whole
        # ancestor chain is addressable from the leaf without joins.
        return LessonProgress(
            id=uuid4(),
            user_id=user_id,
            language_slug=section.language_slug,
            series_slug=section.series_slug,
            section_id=section.section_id,
            lesson_id=lesson_id,
            language_progress_id=section.language_progress_id,
            series_progress_id=section.series_progress_id,
            section_progress_id=section.id,
            viewed_at=now,
            created_at=now,
        )
