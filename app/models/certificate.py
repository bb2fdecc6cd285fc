from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

from app.models.content import Series


@dataclass(frozen=True, slots=True)
class Certificate:
    """Proof that a user completed every lesson of a series.

    The series fields are a snapshot taken at issue time; later edits to
    the series do not rewrite certificates already handed out.
    """

    id: UUID
    user_id: str
    language_slug: str
    series_slug: str
    series_title: str
    lessons: int
    watch_time_seconds: int
    read_time_seconds: int
    completed_at: int

    @staticmethod
    def new(*, user_id: str, series: Series, completed_at: int) -> Certificate:
        return Certificate(
            id=uuid4(),
            user_id=user_id,
            language_slug=series.language_slug,
            series_slug=series.slug,
            series_title=series.title,
            lessons=series.lessons_count,
            watch_time_seconds=series.watch_time_seconds,
            read_time_seconds=series.read_time_seconds,
            completed_at=completed_at,
        )
