"""Progress cascade engine.

Four levels of per-user progress (language → series → section → lesson)
with roll-up counters.  Each public operation:

  1. validates content membership and publication (before any write),
  2. runs every write in ONE unit of work,
  3. records metrics after the commit.

Ancestor progress rows are created on demand: touching a lesson for the
first time creates the section, series and language rows above it.  A
series row created that way becomes the user's current series for the
language; an existing ancestor is left as it is.

Completion and reset walk the chain upward (lesson, section, series,
language) and take row locks in that order.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar
from uuid import UUID

from app.core.metrics import (
    CERTIFICATES_ISSUED,
    CERTIFICATES_REVOKED,
    LESSONS_COMPLETED,
    PROGRESS_OPERATIONS,
    TRANSACTION_RETRIES,
)
from app.models.certificate import Certificate
from app.models.content import Language, Lesson, Section, Series
from app.models.progress import (
    LanguageProgress,
    LessonProgress,
    SectionProgress,
    SeriesProgress,
)
from app.repos.unit_of_work import UnitOfWork, UnitOfWorkFactory
from app.services.certificate_service import CertificateService
from app.services.errors import ConflictError, InvalidError, NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


@dataclass(frozen=True, slots=True)
class ProgressOptions:
    """Flat request for every operation; each level reads the fields it needs."""

    user_id: str
    language_slug: str
    series_slug: str | None = None
    section_id: int | None = None
    lesson_id: int | None = None
    request_id: str = "-"
    is_staff: bool = False

    def log_extra(self) -> dict[str, Any]:
        extra: dict[str, Any] = {
            "request_id": self.request_id,
            "user_id": self.user_id,
            "language_slug": self.language_slug,
        }
        if self.series_slug is not None:
            extra["series_slug"] = self.series_slug
        if self.section_id is not None:
            extra["section_id"] = self.section_id
        if self.lesson_id is not None:
            extra["lesson_id"] = self.lesson_id
        return extra


@dataclass(frozen=True, slots=True)
class LanguageProgressResult:
    language: Language
    progress: LanguageProgress
    created: bool = False


@dataclass(frozen=True, slots=True)
class SeriesProgressResult:
    series: Series
    progress: SeriesProgress
    created: bool = False


@dataclass(frozen=True, slots=True)
class SectionProgressResult:
    section: Section
    progress: SectionProgress
    created: bool = False


@dataclass(frozen=True, slots=True)
class LessonProgressResult:
    lesson: Lesson
    progress: LessonProgress
    created: bool = False
    # Set only when this call issued the series certificate.
    certificate: Certificate | None = None


@dataclass(frozen=True, slots=True)
class _Completion:
    progress: LessonProgress
    created: bool
    completed: bool
    certificate: Certificate | None
    certificate_created: bool


@dataclass(frozen=True, slots=True)
class _Removal:
    uncompleted_series: bool
    revoked: int


class ProgressService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        certificates: CertificateService | None = None,
        clock: Callable[[], int] = _utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._certificates = certificates or CertificateService(uow_factory)
        self._clock = clock

    # ------------------------------------------------------------------
    # create / update
    # ------------------------------------------------------------------

    async def create_or_update_language_progress(
        self, options: ProgressOptions
    ) -> LanguageProgressResult:
        result = await self._retry_on_conflict(
            "create_or_update_language_progress",
            self._create_or_update_language_progress,
            options,
        )
        self._count("language", result.created)
        return result

    async def create_or_update_series_progress(
        self, options: ProgressOptions
    ) -> SeriesProgressResult:
        _require_fields(options, "series_slug")
        result = await self._retry_on_conflict(
            "create_or_update_series_progress",
            self._create_or_update_series_progress,
            options,
        )
        self._count("series", result.created)
        return result

    async def create_or_update_section_progress(
        self, options: ProgressOptions
    ) -> SectionProgressResult:
        _require_fields(options, "series_slug", "section_id")
        result = await self._retry_on_conflict(
            "create_or_update_section_progress",
            self._create_or_update_section_progress,
            options,
        )
        self._count("section", result.created)
        return result

    async def create_or_update_lesson_progress(
        self, options: ProgressOptions
    ) -> LessonProgressResult:
        _require_fields(options, "series_slug", "section_id", "lesson_id")
        result = await self._retry_on_conflict(
            "create_or_update_lesson_progress",
            self._create_or_update_lesson_progress,
            options,
        )
        self._count("lesson", result.created)
        return result

    async def _create_or_update_language_progress(
        self, options: ProgressOptions
    ) -> LanguageProgressResult:
        now = self._clock()
        async with self._uow_factory.begin() as uow:
            language = await self._load_language(uow, options)
            progress = await uow.progress.get_language_progress(
                options.user_id, language.slug
            )
            if progress is None:
                progress, created = await self._ensure_language_progress(
                    uow, options, now
                )
            else:
                progress = await uow.progress.touch_language_progress(progress.id, now)
                created = False
        logger.info(
            "Language progress %s",
            "created" if created else "viewed",
            extra=options.log_extra(),
        )
        return LanguageProgressResult(language, progress, created)

    async def _create_or_update_series_progress(
        self, options: ProgressOptions
    ) -> SeriesProgressResult:
        now = self._clock()
        async with self._uow_factory.begin() as uow:
            series = await self._load_series(uow, options)
            progress = await uow.progress.get_series_progress(
                options.user_id, series.slug
            )
            if progress is None:
                progress, created = await self._ensure_series_progress(
                    uow, options, now
                )
            else:
                # Switch first: it takes the sibling row locks in id order.
                await uow.progress.mark_current_series(progress.id)
                progress = await uow.progress.touch_series_progress(progress.id, now)
                created = False
        logger.info(
            "Series progress %s",
            "created" if created else "viewed",
            extra=options.log_extra(),
        )
        return SeriesProgressResult(series, progress, created)

    async def _create_or_update_section_progress(
        self, options: ProgressOptions
    ) -> SectionProgressResult:
        now = self._clock()
        async with self._uow_factory.begin() as uow:
            _, section = await self._load_section(uow, options)
            progress = await uow.progress.get_section_progress(
                options.user_id, section.id
            )
            if progress is None:
                progress, created = await self._ensure_section_progress(
                    uow, options, now
                )
            else:
                progress = await uow.progress.touch_section_progress(progress.id, now)
                created = False
        logger.info(
            "Section progress %s",
            "created" if created else "viewed",
            extra=options.log_extra(),
        )
        return SectionProgressResult(section, progress, created)

    async def _create_or_update_lesson_progress(
        self, options: ProgressOptions
    ) -> LessonProgressResult:
        now = self._clock()
        async with self._uow_factory.begin() as uow:
            _, _, lesson = await self._load_lesson(uow, options)
            progress = await uow.progress.get_lesson_progress(
                options.user_id, lesson.id
            )
            if progress is None:
                progress, created = await self._ensure_lesson_progress(
                    uow, options, now
                )
            else:
                progress = await uow.progress.touch_lesson_progress(progress.id, now)
                created = False
        logger.info(
            "Lesson progress %s",
            "created" if created else "viewed",
            extra=options.log_extra(),
        )
        return LessonProgressResult(lesson, progress, created)

    # ------------------------------------------------------------------
    # complete / reset
    # ------------------------------------------------------------------

    async def complete_lesson_progress(
        self, options: ProgressOptions
    ) -> LessonProgressResult:
        _require_fields(options, "series_slug", "section_id", "lesson_id")
        lesson, outcome = await self._retry_on_conflict(
            "complete_lesson_progress", self._complete_lesson_progress, options
        )

        if outcome.created:
            PROGRESS_OPERATIONS.labels(level="lesson", operation="create").inc()
        if outcome.completed:
            PROGRESS_OPERATIONS.labels(level="lesson", operation="complete").inc()
            LESSONS_COMPLETED.inc()
        if outcome.certificate_created:
            CERTIFICATES_ISSUED.inc()

        return LessonProgressResult(
            lesson,
            outcome.progress,
            outcome.created,
            outcome.certificate if outcome.certificate_created else None,
        )

    async def _complete_lesson_progress(
        self, options: ProgressOptions
    ) -> tuple[Lesson, _Completion]:
        now = self._clock()
        log_extra = options.log_extra()
        async with self._uow_factory.begin() as uow:
            series, section, lesson = await self._load_lesson(uow, options)
            _require_published(series, section, lesson, options)
            progress, created = await self._ensure_lesson_progress(uow, options, now)

            if progress.is_completed:
                logger.info("Lesson already completed", extra=log_extra)
                return lesson, _Completion(progress, created, False, None, False)

            completed = await uow.progress.complete_lesson_progress(progress.id, now)
            if completed is None:
                # Another transaction completed it between our read and write.
                logger.info("Lesson completed concurrently", extra=log_extra)
                current = await uow.progress.get_lesson_progress(
                    options.user_id, lesson.id
                )
                return lesson, _Completion(
                    current or progress, created, False, None, False
                )
            logger.info("Lesson completed", extra=log_extra)

            section_progress = await uow.progress.increment_section_completed_lessons(
                completed.section_progress_id, section.lessons_count, now
            )
            if section_progress.completed_lessons_count == section.lessons_count:
                await uow.progress.increment_series_completed_sections(
                    completed.series_progress_id
                )
                logger.info("Section completed", extra=log_extra)

            series_progress = await uow.progress.increment_series_completed_lessons(
                completed.series_progress_id, series.lessons_count, now
            )
            certificate: Certificate | None = None
            certificate_created = False
            if series_progress.completed_lessons_count == series.lessons_count:
                await uow.progress.change_language_completed_series(
                    completed.language_progress_id, 1
                )
                logger.info("Series completed", extra=log_extra)
                certificate, certificate_created = await self._certificates.issue(
                    uow,
                    user_id=options.user_id,
                    series=series,
                    completed_at=now,
                )

        return lesson, _Completion(
            completed, created, True, certificate, certificate_created
        )

    async def reset_lesson_progress(self, options: ProgressOptions) -> None:
        """Delete the lesson progress and undo its share of every roll-up."""
        _require_fields(options, "series_slug", "section_id", "lesson_id")
        log_extra = options.log_extra()
        async with self._uow_factory.begin() as uow:
            progress = await uow.progress.get_lesson_progress(
                options.user_id, options.lesson_id
            )
            if progress is None or not _under(progress, options):
                logger.warning("Lesson progress not found", extra=log_extra)
                raise NotFoundError("lesson progress not found")

            await uow.progress.delete_lesson_progress(progress.id)
            removal = _Removal(False, 0)
            if progress.is_completed:
                section_progress = await self._lock_section(
                    uow, progress.section_progress_id
                )
                await uow.progress.decrement_section_completed_lessons(
                    section_progress.id
                )
                removal = await self._remove_from_series(
                    uow,
                    options,
                    progress.series_progress_id,
                    lessons=1,
                    sections=1 if section_progress.is_completed else 0,
                )

        logger.info("Lesson progress reset", extra=log_extra)
        PROGRESS_OPERATIONS.labels(level="lesson", operation="reset").inc()
        CERTIFICATES_REVOKED.inc(removal.revoked)

    # ------------------------------------------------------------------
    # delete
    # ------------------------------------------------------------------

    async def delete_language_progress(self, options: ProgressOptions) -> None:
        """Delete the language progress, its whole subtree and its certificates."""
        log_extra = options.log_extra()
        async with self._uow_factory.begin() as uow:
            progress = await uow.progress.get_language_progress(
                options.user_id, options.language_slug
            )
            if progress is None:
                logger.warning("Language progress not found", extra=log_extra)
                raise NotFoundError("language progress not found")
            await uow.progress.delete_language_progress(progress.id)
            revoked = await self._certificates.revoke_language(
                uow, user_id=options.user_id, language_slug=options.language_slug
            )

        logger.info("Language progress deleted", extra=log_extra)
        PROGRESS_OPERATIONS.labels(level="language", operation="delete").inc()
        CERTIFICATES_REVOKED.inc(revoked)

    async def delete_series_progress(self, options: ProgressOptions) -> None:
        _require_fields(options, "series_slug")
        log_extra = options.log_extra()
        async with self._uow_factory.begin() as uow:
            found = await uow.progress.get_series_progress(
                options.user_id, options.series_slug
            )
            if found is None or found.language_slug != options.language_slug:
                logger.warning("Series progress not found", extra=log_extra)
                raise NotFoundError("series progress not found")

            progress = await self._lock_series(uow, found.id)
            await uow.progress.delete_series_progress(progress.id)
            revoked = 0
            if progress.is_completed:
                await uow.progress.change_language_completed_series(
                    progress.language_progress_id, -1
                )
                revoked = await self._certificates.revoke(
                    uow, user_id=options.user_id, series_slug=progress.series_slug
                )

        logger.info("Series progress deleted", extra=log_extra)
        PROGRESS_OPERATIONS.labels(level="series", operation="delete").inc()
        CERTIFICATES_REVOKED.inc(revoked)

    async def delete_section_progress(self, options: ProgressOptions) -> None:
        _require_fields(options, "series_slug", "section_id")
        log_extra = options.log_extra()
        async with self._uow_factory.begin() as uow:
            found = await uow.progress.get_section_progress(
                options.user_id, options.section_id
            )
            if found is None or not _under(found, options):
                logger.warning("Section progress not found", extra=log_extra)
                raise NotFoundError("section progress not found")

            progress = await self._lock_section(uow, found.id)
            await uow.progress.delete_section_progress(progress.id)
            removal = _Removal(False, 0)
            if progress.completed_lessons_count:
                removal = await self._remove_from_series(
                    uow,
                    options,
                    progress.series_progress_id,
                    lessons=progress.completed_lessons_count,
                    sections=1 if progress.is_completed else 0,
                )

        logger.info("Section progress deleted", extra=log_extra)
        PROGRESS_OPERATIONS.labels(level="section", operation="delete").inc()
        CERTIFICATES_REVOKED.inc(removal.revoked)

    # ------------------------------------------------------------------
    # finders
    # ------------------------------------------------------------------

    async def get_language_progress(self, options: ProgressOptions) -> LanguageProgress:
        async with self._uow_factory.begin() as uow:
            progress = await uow.progress.get_language_progress(
                options.user_id, options.language_slug
            )
        if progress is None:
            raise NotFoundError("language progress not found")
        return progress

    async def get_series_progress(self, options: ProgressOptions) -> SeriesProgress:
        _require_fields(options, "series_slug")
        async with self._uow_factory.begin() as uow:
            progress = await uow.progress.get_series_progress(
                options.user_id, options.series_slug
            )
        if progress is None or progress.language_slug != options.language_slug:
            raise NotFoundError("series progress not found")
        return progress

    async def get_section_progress(self, options: ProgressOptions) -> SectionProgress:
        _require_fields(options, "series_slug", "section_id")
        async with self._uow_factory.begin() as uow:
            progress = await uow.progress.get_section_progress(
                options.user_id, options.section_id
            )
        if progress is None or not _under(progress, options):
            raise NotFoundError("section progress not found")
        return progress

    async def get_lesson_progress(self, options: ProgressOptions) -> LessonProgress:
        _require_fields(options, "series_slug", "section_id", "lesson_id")
        async with self._uow_factory.begin() as uow:
            progress = await uow.progress.get_lesson_progress(
                options.user_id, options.lesson_id
            )
        if progress is None or not _under(progress, options):
            raise NotFoundError("lesson progress not found")
        return progress

    async def list_language_progress(self, user_id: str) -> list[LanguageProgress]:
        """Languages the user has opened, most recently viewed first."""
        async with self._uow_factory.begin() as uow:
            return await uow.progress.list_language_progress(user_id)

    # ------------------------------------------------------------------
    # content validation
    # ------------------------------------------------------------------

    async def _load_language(
        self, uow: UnitOfWork, options: ProgressOptions
    ) -> Language:
        language = await uow.content.get_language(options.language_slug)
        if language is None:
            logger.warning("Language not found", extra=options.log_extra())
            raise NotFoundError("language not found")
        return language

    async def _load_series(self, uow: UnitOfWork, options: ProgressOptions) -> Series:
        series = await uow.content.get_series(
            options.language_slug, options.series_slug
        )
        if series is None or not self._visible(series, options):
            logger.warning("Series not found", extra=options.log_extra())
            raise NotFoundError("series not found")
        return series

    async def _load_section(
        self, uow: UnitOfWork, options: ProgressOptions
    ) -> tuple[Series, Section]:
        series = await self._load_series(uow, options)
        section = await uow.content.get_section(
            options.language_slug, options.series_slug, options.section_id
        )
        if section is None or not self._visible(section, options):
            logger.warning("Section not found", extra=options.log_extra())
            raise NotFoundError("section not found")
        return series, section

    async def _load_lesson(
        self, uow: UnitOfWork, options: ProgressOptions
    ) -> tuple[Series, Section, Lesson]:
        series, section = await self._load_section(uow, options)
        lesson = await uow.content.get_lesson(
            options.language_slug,
            options.series_slug,
            options.section_id,
            options.lesson_id,
        )
        if lesson is None or not self._visible(lesson, options):
            logger.warning("Lesson not found", extra=options.log_extra())
            raise NotFoundError("lesson not found")
        return series, section, lesson

    @staticmethod
    def _visible(entity: Series | Section | Lesson, options: ProgressOptions) -> bool:
        # Unpublished content is only reachable by staff.
        return entity.is_published or options.is_staff

    # ------------------------------------------------------------------
    # ancestor chain
    # ------------------------------------------------------------------

    async def _ensure_language_progress(
        self, uow: UnitOfWork, options: ProgressOptions, now: int
    ) -> tuple[LanguageProgress, bool]:
        existing = await uow.progress.get_language_progress(
            options.user_id, options.language_slug
        )
        if existing is not None:
            return existing, False
        progress = LanguageProgress.new(
            user_id=options.user_id, language_slug=options.language_slug, now=now
        )
        await uow.progress.add_language_progress(progress)
        logger.debug("Created language progress id=%s", progress.id)
        return progress, True

    async def _ensure_series_progress(
        self, uow: UnitOfWork, options: ProgressOptions, now: int
    ) -> tuple[SeriesProgress, bool]:
        existing = await uow.progress.get_series_progress(
            options.user_id, options.series_slug
        )
        if existing is not None:
            return existing, False
        language_progress, _ = await self._ensure_language_progress(uow, options, now)
        progress = SeriesProgress.new(
            user_id=options.user_id,
            language_slug=options.language_slug,
            series_slug=options.series_slug,
            language_progress_id=language_progress.id,
            now=now,
        )
        await uow.progress.add_series_progress(progress)
        progress = await uow.progress.mark_current_series(progress.id)
        logger.debug("Created series progress id=%s", progress.id)
        return progress, True

    async def _ensure_section_progress(
        self, uow: UnitOfWork, options: ProgressOptions, now: int
    ) -> tuple[SectionProgress, bool]:
        existing = await uow.progress.get_section_progress(
            options.user_id, options.section_id
        )
        if existing is not None:
            return existing, False
        series_progress, _ = await self._ensure_series_progress(uow, options, now)
        progress = SectionProgress.new(
            user_id=options.user_id,
            series=series_progress,
            section_id=options.section_id,
            now=now,
        )
        await uow.progress.add_section_progress(progress)
        logger.debug("Created section progress id=%s", progress.id)
        return progress, True

    async def _ensure_lesson_progress(
        self, uow: UnitOfWork, options: ProgressOptions, now: int
    ) -> tuple[LessonProgress, bool]:
        existing = await uow.progress.get_lesson_progress(
            options.user_id, options.lesson_id
        )
        if existing is not None:
            return existing, False
        section_progress, _ = await self._ensure_section_progress(uow, options, now)
        progress = LessonProgress.new(
            user_id=options.user_id,
            section=section_progress,
            lesson_id=options.lesson_id,
            now=now,
        )
        await uow.progress.add_lesson_progress(progress)
        logger.debug("Created lesson progress id=%s", progress.id)
        return progress, True

    # ------------------------------------------------------------------
    # un-completion
    # ------------------------------------------------------------------

    async def _lock_section(
        self, uow: UnitOfWork, progress_id: UUID
    ) -> SectionProgress:
        progress = await uow.progress.lock_section_progress(progress_id)
        if progress is None:
            raise InvalidError("section progress missing under lesson progress")
        return progress

    async def _lock_series(
        self, uow: UnitOfWork, progress_id: UUID
    ) -> SeriesProgress:
        progress = await uow.progress.lock_series_progress(progress_id)
        if progress is None:
            raise InvalidError("series progress missing under child progress")
        return progress

    async def _remove_from_series(
        self,
        uow: UnitOfWork,
        options: ProgressOptions,
        series_progress_id: UUID,
        *,
        lessons: int,
        sections: int,
    ) -> _Removal:
        """Subtract completions from the series and un-complete it if needed."""
        series_progress = await self._lock_series(uow, series_progress_id)
        await uow.progress.remove_series_completions(
            series_progress.id, lessons=lessons, sections=sections
        )
        if not series_progress.is_completed:
            return _Removal(False, 0)

        await uow.progress.change_language_completed_series(
            series_progress.language_progress_id, -1
        )
        revoked = await self._certificates.revoke(
            uow, user_id=options.user_id, series_slug=series_progress.series_slug
        )
        logger.info("Series un-completed", extra=options.log_extra())
        return _Removal(True, revoked)

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    async def _retry_on_conflict(
        self,
        operation: str,
        fn: Callable[[ProgressOptions], Awaitable[T]],
        options: ProgressOptions,
    ) -> T:
        """Run `fn`; if it lost a unique-constraint race, run it once more.

        The second attempt starts a fresh unit of work and finds the row the
        winning transaction committed.
        """
        try:
            return await fn(options)
        except ConflictError:
            logger.warning(
                "Retrying %s after a concurrent insert",
                operation,
                extra=options.log_extra(),
            )
            TRANSACTION_RETRIES.labels(operation=operation).inc()
            return await fn(options)

    @staticmethod
    def _count(level: str, created: bool) -> None:
        PROGRESS_OPERATIONS.labels(
            level=level, operation="create" if created else "update"
        ).inc()


def _require_fields(options: ProgressOptions, *names: str) -> None:
    missing = [name for name in names if getattr(options, name) is None]
    if missing:
        raise InvalidError(f"missing {', '.join(missing)}")


def _under(
    progress: SectionProgress | LessonProgress, options: ProgressOptions
) -> bool:
    """True when the progress row sits under the language/series/section named."""
    return (
        progress.language_slug == options.language_slug
        and progress.series_slug == options.series_slug
        and progress.section_id == options.section_id
    )


def _require_published(
    series: Series, section: Section, lesson: Lesson, options: ProgressOptions
) -> None:
    # Totals count published lessons only, so a draft completion would push
    # the roll-ups past them.  Staff may view drafts but never complete them.
    if series.is_published and section.is_published and lesson.is_published:
        return
    logger.warning("Refused to complete unpublished lesson", extra=options.log_extra())
    raise InvalidError("only published lessons can be completed")
