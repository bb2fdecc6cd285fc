"""Read side of the content hierarchy.

Every lookup takes the full parent chain and returns None when the entity
is missing *or* hangs off a different parent, so "lesson 7 exists but not
in section 3" and "lesson 7 does not exist" look the same to the engine.
"""

from __future__ import annotations

from typing import Protocol

from app.models.content import Language, Lesson, Section, Series


class ContentReader(Protocol):
    async def get_language(self, language_slug: str) -> Language | None: ...
    async def get_series(
        self, language_slug: str, series_slug: str
    ) -> Series | None: ...
    async def get_section(
        self, language_slug: str, series_slug: str, section_id: int
    ) -> Section | None: ...
    async def get_lesson(
        self, language_slug: str, series_slug: str, section_id: int, lesson_id: int
    ) -> Lesson | None: ...


class InMemoryContentRepo:
    """Content fixture store; `add_*` exist for seeding dev data and tests."""

    def __init__(self) -> None:
        self._languages: dict[str, Language] = {}
        self._series: dict[str, Series] = {}
        self._sections: dict[int, Section] = {}
        self._lessons: dict[int, Lesson] = {}

    # --- seeding ---

    def add_language(self, language: Language) -> None:
        if language.slug in self._languages:
            raise ValueError("language slug already exists")
        self._languages[language.slug] = language

    def add_series(self, series: Series) -> None:
        if series.slug in self._series:
            raise ValueError("series slug already exists")
        self._series[series.slug] = series

    def add_section(self, section: Section) -> None:
        if section.id in self._sections:
            raise ValueError("section id already exists")
        self._sections[section.id] = section

    def add_lesson(self, lesson: Lesson) -> None:
        if lesson.id in self._lessons:
            raise ValueError("lesson id already exists")
        self._lessons[lesson.id] = lesson

    def is_empty(self) -> bool:
        return not self._languages

    def clear(self) -> None:
        self._languages.clear()
        self._series.clear()
        self._sections.clear()
        self._lessons.clear()

    # --- ContentReader ---

    async def get_language(self, language_slug: str) -> Language | None:
        return self._languages.get(language_slug)

    async def get_series(self, language_slug: str, series_slug: str) -> Series | None:
        series = self._series.get(series_slug)
        if series is None or series.language_slug != language_slug:
            return None
        return series

    async def get_section(
        self, language_slug: str, series_slug: str, section_id: int
    ) -> Section | None:
        section = self._sections.get(section_id)
        if section is None:
            return None
        if section.language_slug != language_slug or section.series_slug != series_slug:
            return None
        return section

    async def get_lesson(
        self, language_slug: str, series_slug: str, section_id: int, lesson_id: int
    ) -> Lesson | None:
        lesson = self._lessons.get(lesson_id)
        if lesson is None:
            return None
        if (
            lesson.language_slug != language_slug
            or lesson.series_slug != series_slug
            or lesson.section_id != section_id
        ):
            return None
        return lesson


def seed_sample_content(repo: InMemoryContentRepo) -> None:
    """Seed one published series for local development.

    Language "rust" → series "rust-series" → one section with two lessons.
    """
    if not repo.is_empty():
        return
    repo.add_language(Language(id=1, slug="rust", name="Rust", series_count=1))
    repo.add_series(
        Series(
            id=1,
            language_slug="rust",
            slug="rust-series",
            title="Rust Series",
            sections_count=1,
            lessons_count=2,
            watch_time_seconds=600,
            read_time_seconds=300,
            is_published=True,
        )
    )
    repo.add_section(
        Section(
            id=1,
            language_slug="rust",
            series_slug="rust-series",
            title="Getting Started",
            position=1,
            lessons_count=2,
            watch_time_seconds=600,
            read_time_seconds=300,
            is_published=True,
        )
    )
    for position, title in enumerate(("Hello, Cargo", "Ownership"), start=1):
        repo.add_lesson(
            Lesson(
                id=position,
                language_slug="rust",
                series_slug="rust-series",
                section_id=1,
                title=title,
                position=position,
                watch_time_seconds=300,
                read_time_seconds=150,
                is_published=True,
            )
        )
