"""Progress endpoints, one resource per hierarchy level.

  /api/v1/languages/progress                                   viewed languages
  /api/v1/languages/{l}/progress                               language
  /api/v1/languages/{l}/series/{s}/progress                    series
  /api/v1/languages/{l}/series/{s}/sections/{id}/progress      section
  /api/v1/languages/{l}/series/{s}/sections/{id}/lessons/{id}/progress
                                                               lesson

POST creates (201) or marks as viewed (200), GET reads, DELETE removes the
row and its subtree (for a lesson: resets it).  Completing a lesson is
PATCH …/lessons/{id}/progress/complete.

The handlers only translate HTTP to ProgressOptions and results back to
response models; every rule lives in ProgressService.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from app.api.certificates import CertificateOut, certificate_out
from app.api.dependencies import get_progress_service, require_user
from app.api.errors import http_error
from app.middleware.request_context import request_id_var
from app.models.principal import Principal
from app.models.progress import (
    LanguageProgress,
    LessonProgress,
    SectionProgress,
    SeriesProgress,
)
from app.services.errors import ProgressError
from app.services.progress_service import ProgressOptions, ProgressService

router = APIRouter(prefix="/api/v1/languages", tags=["progress"])

CurrentUser = Annotated[Principal, Depends(require_user)]
Service = Annotated[ProgressService, Depends(get_progress_service)]

_SERIES = "/{language_slug}/series/{series_slug}"
_SECTION = _SERIES + "/sections/{section_id}"
_LESSON = _SECTION + "/lessons/{lesson_id}"


class LanguageProgressOut(BaseModel):
    id: UUID
    language_slug: str
    completed_series_count: int
    viewed_at: int
    created_at: int


class SeriesProgressOut(BaseModel):
    id: UUID
    language_slug: str
    series_slug: str
    completed_sections_count: int
    completed_lessons_count: int
    is_current: bool
    completed_at: int | None
    viewed_at: int
    created_at: int


class SectionProgressOut(BaseModel):
    id: UUID
    language_slug: str
    series_slug: str
    section_id: int
    completed_lessons_count: int
    completed_at: int | None
    viewed_at: int
    created_at: int


class LessonProgressOut(BaseModel):
    id: UUID
    language_slug: str
    series_slug: str
    section_id: int
    lesson_id: int
    completed_at: int | None
    viewed_at: int
    created_at: int


class LessonCompletionOut(LessonProgressOut):
    certificate: CertificateOut | None = None


def _language_out(p: LanguageProgress) -> LanguageProgressOut:
    return LanguageProgressOut(
        id=p.id,
        language_slug=p.language_slug,
        completed_series_count=p.completed_series_count,
        viewed_at=p.viewed_at,
        created_at=p.created_at,
    )


def _series_out(p: SeriesProgress) -> SeriesProgressOut:
    return SeriesProgressOut(
        id=p.id,
        language_slug=p.language_slug,
        series_slug=p.series_slug,
        completed_sections_count=p.completed_sections_count,
        completed_lessons_count=p.completed_lessons_count,
        is_current=p.is_current,
        completed_at=p.completed_at,
        viewed_at=p.viewed_at,
        created_at=p.created_at,
    )


def _section_out(p: SectionProgress) -> SectionProgressOut:
    return SectionProgressOut(
        id=p.id,
        language_slug=p.language_slug,
        series_slug=p.series_slug,
        section_id=p.section_id,
        completed_lessons_count=p.completed_lessons_count,
        completed_at=p.completed_at,
        viewed_at=p.viewed_at,
        created_at=p.created_at,
    )


def _lesson_out(p: LessonProgress) -> LessonProgressOut:
    return LessonProgressOut(
        id=p.id,
        language_slug=p.language_slug,
        series_slug=p.series_slug,
        section_id=p.section_id,
        lesson_id=p.lesson_id,
        completed_at=p.completed_at,
        viewed_at=p.viewed_at,
        created_at=p.created_at,
    )


def _options(
    principal: Principal,
    language_slug: str,
    series_slug: str | None = None,
    section_id: int | None = None,
    lesson_id: int | None = None,
) -> ProgressOptions:
    return ProgressOptions(
        user_id=principal.user_id,
        language_slug=language_slug,
        series_slug=series_slug,
        section_id=section_id,
        lesson_id=lesson_id,
        request_id=request_id_var.get(),
        is_staff=principal.is_staff(),
    )


def _created_status(response: Response, created: bool) -> None:
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK


# ---------------------------------------------------------------------------
# Language
# ---------------------------------------------------------------------------


@router.get("/progress", response_model=list[LanguageProgressOut])
async def list_language_progress(
    principal: CurrentUser, service: Service
) -> list[LanguageProgressOut]:
    try:
        rows = await service.list_language_progress(principal.user_id)
    except ProgressError as e:
        raise http_error(e) from None
    return [_language_out(p) for p in rows]


@router.post("/{language_slug}/progress", response_model=LanguageProgressOut)
async def create_or_update_language_progress(
    language_slug: str,
    response: Response,
    principal: CurrentUser,
    service: Service,
) -> LanguageProgressOut:
    try:
        result = await service.create_or_update_language_progress(
            _options(principal, language_slug)
        )
    except ProgressError as e:
        raise http_error(e) from None
    _created_status(response, result.created)
    return _language_out(result.progress)


@router.get("/{language_slug}/progress", response_model=LanguageProgressOut)
async def get_language_progress(
    language_slug: str, principal: CurrentUser, service: Service
) -> LanguageProgressOut:
    try:
        progress = await service.get_language_progress(
            _options(principal, language_slug)
        )
    except ProgressError as e:
        raise http_error(e) from None
    return _language_out(progress)


@router.delete("/{language_slug}/progress", status_code=status.HTTP_204_NO_CONTENT)
async def delete_language_progress(
    language_slug: str, principal: CurrentUser, service: Service
) -> None:
    try:
        await service.delete_language_progress(_options(principal, language_slug))
    except ProgressError as e:
        raise http_error(e) from None


# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------


@router.post(_SERIES + "/progress", response_model=SeriesProgressOut)
async def create_or_update_series_progress(
    language_slug: str,
    series_slug: str,
    response: Response,
    principal: CurrentUser,
    service: Service,
) -> SeriesProgressOut:
    try:
        result = await service.create_or_update_series_progress(
            _options(principal, language_slug, series_slug)
        )
    except ProgressError as e:
        raise http_error(e) from None
    _created_status(response, result.created)
    return _series_out(result.progress)


@router.get(_SERIES + "/progress", response_model=SeriesProgressOut)
async def get_series_progress(
    language_slug: str, series_slug: str, principal: CurrentUser, service: Service
) -> SeriesProgressOut:
    try:
        progress = await service.get_series_progress(
            _options(principal, language_slug, series_slug)
        )
    except ProgressError as e:
        raise http_error(e) from None
    return _series_out(progress)


@router.delete(_SERIES + "/progress", status_code=status.HTTP_204_NO_CONTENT)
async def delete_series_progress(
    language_slug: str, series_slug: str, principal: CurrentUser, service: Service
) -> None:
    try:
        await service.delete_series_progress(
            _options(principal, language_slug, series_slug)
        )
    except ProgressError as e:
        raise http_error(e) from None


# ---------------------------------------------------------------------------
# Section
# ---------------------------------------------------------------------------


@router.post(_SECTION + "/progress", response_model=SectionProgressOut)
async def create_or_update_section_progress(
    language_slug: str,
    series_slug: str,
    section_id: int,
    response: Response,
    principal: CurrentUser,
    service: Service,
) -> SectionProgressOut:
    try:
        result = await service.create_or_update_section_progress(
            _options(principal, language_slug, series_slug, section_id)
        )
    except ProgressError as e:
        raise http_error(e) from None
    _created_status(response, result.created)
    return _section_out(result.progress)


@router.get(_SECTION + "/progress", response_model=SectionProgressOut)
async def get_section_progress(
    language_slug: str,
    series_slug: str,
    section_id: int,
    principal: CurrentUser,
    service: Service,
) -> SectionProgressOut:
    try:
        progress = await service.get_section_progress(
            _options(principal, language_slug, series_slug, section_id)
        )
    except ProgressError as e:
        raise http_error(e) from None
    return _section_out(progress)


@router.delete(_SECTION + "/progress", status_code=status.HTTP_204_NO_CONTENT)
async def delete_section_progress(
    language_slug: str,
    series_slug: str,
    section_id: int,
    principal: CurrentUser,
    service: Service,
) -> None:
    try:
        await service.delete_section_progress(
            _options(principal, language_slug, series_slug, section_id)
        )
    except ProgressError as e:
        raise http_error(e) from None


# ---------------------------------------------------------------------------
# Lesson
# ---------------------------------------------------------------------------


@router.post(_LESSON + "/progress", response_model=LessonProgressOut)
async def create_or_update_lesson_progress(
    language_slug: str,
    series_slug: str,
    section_id: int,
    lesson_id: int,
    response: Response,
    principal: CurrentUser,
    service: Service,
) -> LessonProgressOut:
    try:
        result = await service.create_or_update_lesson_progress(
            _options(principal, language_slug, series_slug, section_id, lesson_id)
        )
    except ProgressError as e:
        raise http_error(e) from None
    _created_status(response, result.created)
    return _lesson_out(result.progress)


@router.get(_LESSON + "/progress", response_model=LessonProgressOut)
async def get_lesson_progress(
    language_slug: str,
    series_slug: str,
    section_id: int,
    lesson_id: int,
    principal: CurrentUser,
    service: Service,
) -> LessonProgressOut:
    try:
        progress = await service.get_lesson_progress(
            _options(principal, language_slug, series_slug, section_id, lesson_id)
        )
    except ProgressError as e:
        raise http_error(e) from None
    return _lesson_out(progress)


@router.patch(_LESSON + "/progress/complete", response_model=LessonCompletionOut)
async def complete_lesson_progress(
    language_slug: str,
    series_slug: str,
    section_id: int,
    lesson_id: int,
    principal: CurrentUser,
    service: Service,
) -> LessonCompletionOut:
    try:
        result = await service.complete_lesson_progress(
            _options(principal, language_slug, series_slug, section_id, lesson_id)
        )
    except ProgressError as e:
        raise http_error(e) from None
    return LessonCompletionOut(
        **_lesson_out(result.progress).model_dump(),
        certificate=certificate_out(result.certificate) if result.certificate else None,
    )


@router.delete(_LESSON + "/progress", status_code=status.HTTP_204_NO_CONTENT)
async def reset_lesson_progress(
    language_slug: str,
    series_slug: str,
    section_id: int,
    lesson_id: int,
    principal: CurrentUser,
    service: Service,
) -> None:
    try:
        await service.reset_lesson_progress(
            _options(principal, language_slug, series_slug, section_id, lesson_id)
        )
    except ProgressError as e:
        raise http_error(e) from None
