"""PostgreSQL implementation of CertificateRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CertificateRow
from app.models.certificate import Certificate


class PgCertificateRepo:
    """Satisfies the CertificateRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, certificate_id: UUID) -> Certificate | None:
        stmt = select(CertificateRow).where(CertificateRow.id == certificate_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def get_by_user_and_series(
        self, user_id: str, series_slug: str
    ) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.user_id == user_id,
            CertificateRow.series_slug == series_slug,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def add(self, certificate: Certificate) -> None:
        self._session.add(
            CertificateRow(
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
        )
        await self._session.flush()

    async def delete_by_user_and_series(self, user_id: str, series_slug: str) -> int:
        stmt = delete(CertificateRow).where(
            CertificateRow.user_id == user_id,
            CertificateRow.series_slug == series_slug,
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete_by_user_and_language(
        self, user_id: str, language_slug: str
    ) -> int:
        stmt = delete(CertificateRow).where(
            CertificateRow.user_id == user_id,
            CertificateRow.language_slug == language_slug,
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def count_by_user(self, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(CertificateRow)
            .where(CertificateRow.user_id == user_id)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def list_by_user(
        self, user_id: str, *, offset: int, limit: int
    ) -> list[Certificate]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.user_id == user_id)
            .order_by(CertificateRow.completed_at.desc(), CertificateRow.id)
            .offset(offset)
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        user_id=row.user_id,
        language_slug=row.language_slug,
        series_slug=row.series_slug,
        series_title=row.series_title,
        lessons=row.lessons,
        watch_time_seconds=row.watch_time_seconds,
        read_time_seconds=row.read_time_seconds,
        completed_at=row.completed_at,
    )
