"""Certificate endpoints.

GET /api/v1/certificates                  the caller's certificates, paginated
GET /api/v1/certificates/{certificate_id} public lookup, so a certificate
                                          link can be verified by anyone
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.dependencies import get_certificate_service, require_user
from app.api.errors import http_error
from app.core.config import SETTINGS
from app.models.certificate import Certificate
from app.models.principal import Principal
from app.services.certificate_service import CertificateService
from app.services.errors import ProgressError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/certificates", tags=["certificates"])


class CertificateOut(BaseModel):
    id: UUID
    user_id: str
    language_slug: str
    series_slug: str
    series_title: str
    lessons: int
    watch_time_seconds: int
    read_time_seconds: int
    completed_at: int


class CertificatePageOut(BaseModel):
    items: list[CertificateOut]
    total: int
    offset: int
    limit: int


def certificate_out(certificate: Certificate) -> CertificateOut:
    return CertificateOut(
        id=certificate.id,
        user_id=certificate.user_id,
        language_slug=certificate.language_slug,
        series_slug=certificate.series_slug,
        series_title=certificate.series_title,
        lessons=certificate.lessons,
        watch_time_seconds=certificate.watch_time_seconds,
        read_time_seconds=certificate.read_time_seconds,
        completed_at=certificate.completed_at,
    )


@router.get("", response_model=CertificatePageOut)
async def list_certificates(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[CertificateService, Depends(get_certificate_service)],
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> CertificatePageOut:
    page_limit = limit or SETTINGS.certificates_page_limit
    try:
        certificates, total = await service.list_certificates(
            principal.user_id, offset=offset, limit=page_limit
        )
    except ProgressError as e:
        raise http_error(e) from None
    return CertificatePageOut(
        items=[certificate_out(c) for c in certificates],
        total=total,
        offset=offset,
        limit=page_limit,
    )


@router.get("/{certificate_id}", response_model=CertificateOut)
async def get_certificate(
    certificate_id: UUID,
    service: Annotated[CertificateService, Depends(get_certificate_service)],
) -> CertificateOut:
    try:
        certificate = await service.get_certificate(certificate_id)
    except ProgressError as e:
        raise http_error(e) from None
    return certificate_out(certificate)
