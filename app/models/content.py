"""Content hierarchy as seen by the progress engine.

These rows are owned by the content service; here they are read-only
snapshots used for membership checks and for the totals the roll-up
counters are compared against.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Language:
    id: int
    slug: str
    name: str
    series_count: int = 0


@dataclass(frozen=True, slots=True)
class Series:
    id: int
    language_slug: str
    slug: str
    title: str
    sections_count: int = 0
    lessons_count: int = 0
    watch_time_seconds: int = 0
    read_time_seconds: int = 0
    is_published: bool = False


@dataclass(frozen=True, slots=True)
class Section:
    id: int
    language_slug: str
    series_slug: str
    title: str
    position: int
    lessons_count: int = 0
    watch_time_seconds: int = 0
    read_time_seconds: int = 0
    is_published: bool = False


@dataclass(frozen=True, slots=True)
class Lesson:
    id: int
    language_slug: str
    series_slug: str
    section_id: int
    title: str
    position: int
    watch_time_seconds: int = 0
    read_time_seconds: int = 0
    is_published: bool = False
