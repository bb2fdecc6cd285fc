from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.certificate import Certificate
from app.services.errors import ConflictError


class CertificateRepo(Protocol):
    async def get_by_id(self, certificate_id: UUID) -> Certificate | None: ...
    async def get_by_user_and_series(
        self, user_id: str, series_slug: str
    ) -> Certificate | None: ...
    async def add(self, certificate: Certificate) -> None: ...
    async def delete_by_user_and_series(
        self, user_id: str, series_slug: str
    ) -> int: ...
    async def delete_by_user_and_language(
        self, user_id: str, language_slug: str
    ) -> int: ...
    async def count_by_user(self, user_id: str) -> int: ...
    async def list_by_user(
        self, user_id: str, *, offset: int, limit: int
    ) -> list[Certificate]: ...


class InMemoryCertificateRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Certificate] = {}

    def snapshot(self) -> dict[UUID, Certificate]:
        return dict(self._by_id)

    def restore(self, state: dict[UUID, Certificate]) -> None:
        self._by_id = dict(state)

    def clear(self) -> None:
        self._by_id.clear()

    async def get_by_id(self, certificate_id: UUID) -> Certificate | None:
        return self._by_id.get(certificate_id)

    async def get_by_user_and_series(
        self, user_id: str, series_slug: str
    ) -> Certificate | None:
        for c in self._by_id.values():
            if c.user_id == user_id and c.series_slug == series_slug:
                return c
        return None

    async def add(self, certificate: Certificate) -> None:
        # Same guarantee as the (user_id, series_slug) unique constraint.
        if await self.get_by_user_and_series(
            certificate.user_id, certificate.series_slug
        ):
            raise ConflictError("certificate already exists")
        self._by_id[certificate.id] = certificate

    async def delete_by_user_and_series(self, user_id: str, series_slug: str) -> int:
        return self._delete_where(
            lambda c: c.user_id == user_id and c.series_slug == series_slug
        )

    async def delete_by_user_and_language(
        self, user_id: str, language_slug: str
    ) -> int:
        return self._delete_where(
            lambda c: c.user_id == user_id and c.language_slug == language_slug
        )

    async def count_by_user(self, user_id: str) -> int:
        return sum(1 for c in self._by_id.values() if c.user_id == user_id)

    async def list_by_user(
        self, user_id: str, *, offset: int, limit: int
    ) -> list[Certificate]:
        rows = sorted(
            (c for c in self._by_id.values() if c.user_id == user_id),
            key=lambda c: c.completed_at,
            reverse=True,
        )
        return rows[offset : offset + limit]

    def _delete_where(self, predicate) -> int:
        doomed = [cid for cid, c in self._by_id.items() if predicate(c)]
        for cid in doomed:
            del self._by_id[cid]
        return len(doomed)
