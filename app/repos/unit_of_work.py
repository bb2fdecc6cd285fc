"""Unit of Work: one transaction, three repositories.

`factory.begin()` is an async context manager yielding an object with
`content`, `progress` and `certificates` repositories that all share one
transaction.  Clean exit commits; any exception (including cancellation)
rolls back, so a cascade is never half-applied.

The progress engine is written once against the UnitOfWork protocol and
runs unchanged on either implementation:

  InMemoryUnitOfWorkFactory: dev and tests.  Transactions are serialized
    by an asyncio.Lock and rolled back by restoring a snapshot.

  PgUnitOfWorkFactory: one AsyncSession per unit of work, READ COMMITTED
    (set on the engine), constraints deferred to commit.  SQLAlchemy errors
    are translated to ProgressError here, so callers never see driver
    exceptions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.repos.certificate_repo import CertificateRepo, InMemoryCertificateRepo
from app.repos.content_repo import ContentReader, InMemoryContentRepo
from app.repos.pg_certificate_repo import PgCertificateRepo
from app.repos.pg_content_repo import PgContentRepo
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from app.services.errors import from_db_error

logger = logging.getLogger(__name__)


class UnitOfWork(Protocol):
    content: ContentReader
    progress: ProgressRepo
    certificates: CertificateRepo


class UnitOfWorkFactory(Protocol):
    def begin(self) -> AbstractAsyncContextManager[UnitOfWork]: ...


@dataclass(frozen=True, slots=True)
class _BoundUnitOfWork:
    content: ContentReader
    progress: ProgressRepo
    certificates: CertificateRepo


class InMemoryUnitOfWorkFactory:
    def __init__(
        self,
        content: InMemoryContentRepo | None = None,
        progress: InMemoryProgressRepo | None = None,
        certificates: InMemoryCertificateRepo | None = None,
    ) -> None:
        self.content = content or InMemoryContentRepo()
        self.progress = progress or InMemoryProgressRepo()
        self.certificates = certificates or InMemoryCertificateRepo()
        self._lock = asyncio.Lock()

    def clear(self) -> None:
        self.content.clear()
        self.progress.clear()
        self.certificates.clear()

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[UnitOfWork]:
        async with self._lock:
            progress_state = self.progress.snapshot()
            certificate_state = self.certificates.snapshot()
            try:
                yield _BoundUnitOfWork(
                    content=self.content,
                    progress=self.progress,
                    certificates=self.certificates,
                )
            except BaseException:
                self.progress.restore(progress_state)
                self.certificates.restore(certificate_state)
                logger.debug("In-memory unit of work rolled back")
                raise


class PgUnitOfWorkFactory:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[UnitOfWork]:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    await session.execute(text("SET CONSTRAINTS ALL DEFERRED"))
                    yield _BoundUnitOfWork(
                        content=PgContentRepo(session),
                        progress=PgProgressRepo(session),
                        certificates=PgCertificateRepo(session),
                    )
            except SQLAlchemyError as exc:
                logger.warning("Unit of work rolled back: %s", exc.__class__.__name__)
                raise from_db_error(exc) from exc
