"""Certificate issuer and certificate reads.

`issue` and `revoke` take the caller's unit of work: a certificate is only
ever written in the same transaction as the series progress change that
earned (or lost) it.  The read methods open their own short unit of work.
"""

from __future__ import annotations

import logging
from uuid import UUID

from app.models.certificate import Certificate
from app.models.content import Series
from app.repos.unit_of_work import UnitOfWork, UnitOfWorkFactory
from app.services.errors import NotFoundError

logger = logging.getLogger(__name__)


class CertificateService:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def issue(
        self,
        uow: UnitOfWork,
        *,
        user_id: str,
        series: Series,
        completed_at: int,
    ) -> tuple[Certificate, bool]:
        """Return the (user, series) certificate, creating it if missing.

        The boolean is True when this call created the row.  A concurrent
        issue for the same pair fails the unique constraint and surfaces as
        ConflictError, rolling the whole completion back.
        """
        existing = await uow.certificates.get_by_user_and_series(user_id, series.slug)
        if existing is not None:
            logger.info(
                "Certificate already issued id=%s",
                existing.id,
                extra={"user_id": user_id, "series_slug": series.slug},
            )
            return existing, False

        certificate = Certificate.new(
            user_id=user_id, series=series, completed_at=completed_at
        )
        await uow.certificates.add(certificate)
        logger.info(
            "Issued certificate id=%s lessons=%d",
            certificate.id,
            certificate.lessons,
            extra={
                "user_id": user_id,
                "series_slug": series.slug,
                "certificate_id": str(certificate.id),
            },
        )
        return certificate, True

    async def revoke(self, uow: UnitOfWork, *, user_id: str, series_slug: str) -> int:
        removed = await uow.certificates.delete_by_user_and_series(user_id, series_slug)
        if removed:
            logger.info(
                "Revoked certificate",
                extra={"user_id": user_id, "series_slug": series_slug},
            )
        return removed

    async def revoke_language(
        self, uow: UnitOfWork, *, user_id: str, language_slug: str
    ) -> int:
        removed = await uow.certificates.delete_by_user_and_language(
            user_id, language_slug
        )
        if removed:
            logger.info(
                "Revoked %d certificate(s)",
                removed,
                extra={"user_id": user_id, "language_slug": language_slug},
            )
        return removed

    async def get_certificate(self, certificate_id: UUID) -> Certificate:
        async with self._uow_factory.begin() as uow:
            certificate = await uow.certificates.get_by_id(certificate_id)
        if certificate is None:
            logger.warning(
                "Certificate not found",
                extra={"certificate_id": str(certificate_id)},
            )
            raise NotFoundError("certificate not found")
        return certificate

    async def list_certificates(
        self, user_id: str, *, offset: int = 0, limit: int = 25
    ) -> tuple[list[Certificate], int]:
        """Return one page of the user's certificates (newest first) and the total."""
        async with self._uow_factory.begin() as uow:
            total = await uow.certificates.count_by_user(user_id)
            if total == 0:
                return [], 0
            page = await uow.certificates.list_by_user(
                user_id, offset=offset, limit=limit
            )
        logger.debug(
            "Listed %d of %d certificates", len(page), total, extra={"user_id": user_id}
        )
        return page, total
