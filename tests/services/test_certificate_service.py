from __future__ import annotations

import asyncio
import uuid

import pytest

from app.models.certificate import Certificate
from app.models.content import Series
from app.repos.unit_of_work import InMemoryUnitOfWorkFactory
from app.services.certificate_service import CertificateService
from app.services.errors import NotFoundError

RUST = Series(
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


def _series(n: int) -> Series:
    return Series(
        id=n,
        language_slug="rust",
        slug=f"series-{n}",
        title=f"Series {n}",
        lessons_count=n,
        is_published=True,
    )


def test_issue_snapshots_series_and_is_idempotent() -> None:
    factory = InMemoryUnitOfWorkFactory()
    service = CertificateService(factory)

    async def scenario():
        async with factory.begin() as uow:
            first = await service.issue(
                uow, user_id="user-1", series=RUST, completed_at=100
            )
            second = await service.issue(
                uow, user_id="user-1", series=RUST, completed_at=200
            )
        return first, second, await factory.certificates.count_by_user("user-1")

    (certificate, created), (again, created_again), count = asyncio.run(scenario())
    assert created is True
    assert created_again is False
    assert again.id == certificate.id
    assert count == 1
    assert certificate.series_title == "Rust Series"
    assert certificate.lessons == 2
    assert certificate.watch_time_seconds == 600
    assert certificate.read_time_seconds == 300
    assert certificate.completed_at == 100


def test_revoke_removes_only_that_series() -> None:
    factory = InMemoryUnitOfWorkFactory()
    service = CertificateService(factory)

    async def scenario():
        async with factory.begin() as uow:
            await service.issue(uow, user_id="user-1", series=RUST, completed_at=1)
            await service.issue(
                uow, user_id="user-1", series=_series(3), completed_at=2
            )
            removed = await service.revoke(
                uow, user_id="user-1", series_slug="rust-series"
            )
            removed_again = await service.revoke(
                uow, user_id="user-1", series_slug="rust-series"
            )
        remaining = await factory.certificates.count_by_user("user-1")
        return removed, removed_again, remaining

    removed, removed_again, remaining = asyncio.run(scenario())
    assert removed == 1
    assert removed_again == 0
    assert remaining == 1


def test_revoke_language_removes_every_series_in_it() -> None:
    factory = InMemoryUnitOfWorkFactory()
    service = CertificateService(factory)

    async def scenario():
        async with factory.begin() as uow:
            for n in (1, 2, 3):
                await service.issue(
                    uow, user_id="user-1", series=_series(n), completed_at=n
                )
            await service.issue(
                uow, user_id="user-2", series=_series(1), completed_at=9
            )
            removed = await service.revoke_language(
                uow, user_id="user-1", language_slug="rust"
            )
        return removed, await factory.certificates.count_by_user("user-2")

    removed, other_user = asyncio.run(scenario())
    assert removed == 3
    assert other_user == 1


def test_get_certificate() -> None:
    factory = InMemoryUnitOfWorkFactory()
    service = CertificateService(factory)
    certificate = Certificate.new(user_id="user-1", series=RUST, completed_at=5)
    asyncio.run(factory.certificates.add(certificate))

    assert asyncio.run(service.get_certificate(certificate.id)) == certificate
    with pytest.raises(NotFoundError):
        asyncio.run(service.get_certificate(uuid.uuid4()))


def test_list_certificates_paginates_newest_first() -> None:
    factory = InMemoryUnitOfWorkFactory()
    service = CertificateService(factory)
    for n in range(1, 6):
        asyncio.run(
            factory.certificates.add(
                Certificate.new(user_id="user-1", series=_series(n), completed_at=n)
            )
        )

    page, total = asyncio.run(service.list_certificates("user-1", offset=1, limit=2))
    assert total == 5
    assert [c.series_slug for c in page] == ["series-4", "series-3"]


def test_list_certificates_empty() -> None:
    service = CertificateService(InMemoryUnitOfWorkFactory())
    assert asyncio.run(service.list_certificates("nobody")) == ([], 0)
