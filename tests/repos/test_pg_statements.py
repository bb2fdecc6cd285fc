"""SQL emitted by the PostgreSQL repositories, checked without a database.

A recording session stands in for AsyncSession: it keeps every statement
and replays canned results, and each statement is compiled with the
postgresql dialect.  The end-to-end behaviour against a live server is in
tests/repos/test_pg_integration.py.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError

from app.db.tables import (
    CertificateRow,
    LessonProgressRow,
    SectionProgressRow,
    SeriesProgressRow,
)
from app.repos.pg_certificate_repo import PgCertificateRepo
from app.repos.pg_content_repo import PgContentRepo
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.unit_of_work import PgUnitOfWorkFactory
from app.services.errors import ConflictError, InternalError

LANGUAGE_ID = uuid.uuid4()
SERIES_ID = uuid.uuid4()
SECTION_ID = uuid.uuid4()
LESSON_ID = uuid.uuid4()


class _Result:
    def __init__(self, value=None) -> None:
        self._value = value

    def scalar_one(self):
        return self._value

    def scalar_one_or_none(self):
        return self._value

    def one(self):
        return self._value

    def scalars(self):
        return SimpleNamespace(all=lambda: list(self._value or []))

    @property
    def rowcount(self) -> int:
        return self._value or 0


class _RecordingSession:
    def __init__(self, *results) -> None:
        self.statements: list = []
        self.added: list = []
        self._results = list(results)

    async def execute(self, stmt):
        self.statements.append(stmt)
        return _Result(self._results.pop(0) if self._results else None)

    def add(self, obj) -> None:
        self.added.append(obj)

    async def flush(self) -> None:
        return None


def _sql(stmt) -> str:
    compiled = stmt.compile(dialect=postgresql.dialect())
    return " ".join(str(compiled).split())


def _series_row(**overrides) -> SeriesProgressRow:
    fields = dict(
        id=SERIES_ID,
        user_id="user-1",
        language_slug="rust",
        series_slug="rust-series",
        language_progress_id=LANGUAGE_ID,
        completed_sections_count=0,
        completed_lessons_count=0,
        is_current=True,
        completed_at=None,
        viewed_at=1,
        created_at=1,
    )
    fields.update(overrides)
    return SeriesProgressRow(**fields)


def _section_row(**overrides) -> SectionProgressRow:
    fields = dict(
        id=SECTION_ID,
        user_id="user-1",
        language_slug="rust",
        series_slug="rust-series",
        section_id=1,
        language_progress_id=LANGUAGE_ID,
        series_progress_id=SERIES_ID,
        completed_lessons_count=0,
        completed_at=None,
        viewed_at=1,
        created_at=1,
    )
    fields.update(overrides)
    return SectionProgressRow(**fields)


def _lesson_row(**overrides) -> LessonProgressRow:
    fields = dict(
        id=LESSON_ID,
        user_id="user-1",
        language_slug="rust",
        series_slug="rust-series",
        section_id=1,
        lesson_id=1,
        language_progress_id=LANGUAGE_ID,
        series_progress_id=SERIES_ID,
        section_progress_id=SECTION_ID,
        completed_at=None,
        viewed_at=1,
        created_at=1,
    )
    fields.update(overrides)
    return LessonProgressRow(**fields)


# ---- progress counters ----


def test_complete_lesson_is_conditional_on_completed_at_null() -> None:
    session = _RecordingSession(_lesson_row(completed_at=5))
    result = asyncio.run(PgProgressRepo(session).complete_lesson_progress(LESSON_ID, 5))

    sql = _sql(session.statements[0])
    assert sql.startswith("UPDATE lesson_progress SET completed_at=")
    assert "lesson_progress.completed_at IS NULL" in sql
    assert "RETURNING" in sql
    assert result.completed_at == 5


def test_complete_lesson_lost_race_returns_none() -> None:
    session = _RecordingSession(None)
    repo = PgProgressRepo(session)
    assert asyncio.run(repo.complete_lesson_progress(LESSON_ID, 5)) is None


def test_section_increment_decides_completion_in_one_statement() -> None:
    session = _RecordingSession(_section_row(completed_lessons_count=1))
    asyncio.run(
        PgProgressRepo(session).increment_section_completed_lessons(SECTION_ID, 2, 7)
    )

    assert len(session.statements) == 1
    sql = _sql(session.statements[0])
    assert "completed_lessons_count=(section_progress.completed_lessons_count +" in sql
    assert "CASE WHEN" in sql
    assert "coalesce(section_progress.completed_at," in sql
    assert "ELSE section_progress.completed_at END" in sql
    assert "RETURNING" in sql


def test_series_increment_decides_completion_in_one_statement() -> None:
    session = _RecordingSession(_series_row(completed_lessons_count=2))
    result = asyncio.run(
        PgProgressRepo(session).increment_series_completed_lessons(SERIES_ID, 2, 7)
    )

    sql = _sql(session.statements[0])
    assert sql.startswith("UPDATE series_progress SET")
    assert "CASE WHEN" in sql
    assert "coalesce(series_progress.completed_at," in sql
    assert result.completed_lessons_count == 2


def test_decrements_are_floored_with_greatest() -> None:
    session = _RecordingSession(_section_row(), _series_row())
    repo = PgProgressRepo(session)

    async def scenario():
        await repo.decrement_section_completed_lessons(SECTION_ID)
        await repo.remove_series_completions(SERIES_ID, lessons=2, sections=1)

    asyncio.run(scenario())
    section_sql, series_sql = (_sql(s) for s in session.statements)
    assert "greatest(section_progress.completed_lessons_count -" in section_sql
    assert "completed_at=" in section_sql
    assert "greatest(series_progress.completed_lessons_count -" in series_sql
    assert "greatest(series_progress.completed_sections_count -" in series_sql
    assert "completed_at=" in series_sql


def test_remove_nothing_keeps_series_completed_at() -> None:
    session = _RecordingSession(_series_row(completed_at=9))
    asyncio.run(
        PgProgressRepo(session).remove_series_completions(
            SERIES_ID, lessons=0, sections=0
        )
    )
    assert "completed_at=" not in _sql(session.statements[0])


def test_language_counter_change_is_floored() -> None:
    row = SimpleNamespace(
        id=LANGUAGE_ID,
        user_id="user-1",
        language_slug="rust",
        completed_series_count=0,
        viewed_at=1,
        created_at=1,
    )
    session = _RecordingSession(row)
    asyncio.run(
        PgProgressRepo(session).change_language_completed_series(LANGUAGE_ID, -1)
    )
    sql = _sql(session.statements[0])
    assert "greatest(language_progress.completed_series_count +" in sql


# ---- locking ----


def test_lock_rows_use_select_for_update() -> None:
    session = _RecordingSession(_section_row(), _series_row())
    repo = PgProgressRepo(session)

    async def scenario():
        await repo.lock_section_progress(SECTION_ID)
        await repo.lock_series_progress(SERIES_ID)

    asyncio.run(scenario())
    for stmt in session.statements:
        assert _sql(stmt).endswith("FOR UPDATE")


def test_mark_current_locks_siblings_in_id_order_before_writing() -> None:
    owner = SimpleNamespace(user_id="user-1", language_slug="rust")
    session = _RecordingSession(owner, None, None, _series_row())
    result = asyncio.run(PgProgressRepo(session).mark_current_series(SERIES_ID))

    lookup, lock, clear, mark = (_sql(s) for s in session.statements)
    assert lookup.startswith("SELECT series_progress.user_id")
    assert "FOR UPDATE" not in lookup

    assert lock.startswith("SELECT series_progress.id FROM series_progress")
    assert "ORDER BY series_progress.id FOR UPDATE" in lock

    assert clear.startswith("UPDATE series_progress SET is_current=")
    assert "series_progress.id != " in clear
    assert "series_progress.is_current IS true" in clear

    assert mark.startswith("UPDATE series_progress SET is_current=")
    assert result.is_current is True


# ---- certificates and content ----


def test_certificate_page_is_newest_first_with_stable_tiebreak() -> None:
    session = _RecordingSession([])
    asyncio.run(PgCertificateRepo(session).list_by_user("u", offset=10, limit=5))
    sql = _sql(session.statements[0])
    assert "ORDER BY certificates.completed_at DESC, certificates.id LIMIT" in sql
    assert "OFFSET" in sql


def test_certificate_delete_by_language_reports_rowcount() -> None:
    session = _RecordingSession(3)
    removed = asyncio.run(
        PgCertificateRepo(session).delete_by_user_and_language("u", "rust")
    )
    sql = _sql(session.statements[0])
    assert sql.startswith("DELETE FROM certificates WHERE")
    assert "certificates.language_slug" in sql
    assert removed == 3


def test_certificate_add_stores_a_full_row() -> None:
    session = _RecordingSession()
    certificate = SimpleNamespace(
        id=uuid.uuid4(),
        user_id="u",
        language_slug="rust",
        series_slug="rust-series",
        series_title="Rust Series",
        lessons=2,
        watch_time_seconds=600,
        read_time_seconds=300,
        completed_at=1,
    )
    asyncio.run(PgCertificateRepo(session).add(certificate))
    assert isinstance(session.added[0], CertificateRow)
    assert session.added[0].series_title == "Rust Series"


def test_content_lesson_lookup_filters_on_whole_parent_chain() -> None:
    session = _RecordingSession(None)
    lesson = asyncio.run(PgContentRepo(session).get_lesson("rust", "rust-series", 1, 2))
    where = _sql(session.statements[0]).split(" WHERE ", 1)[1]
    for column in (
        "lessons.id =",
        "lessons.section_id =",
        "lessons.series_slug =",
        "lessons.language_slug =",
    ):
        assert column in where
    assert lesson is None


# ---- unit of work ----


class _PgError(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


class _TransactionSession(_RecordingSession):
    def __init__(self) -> None:
        super().__init__()
        self.committed = False
        self.rolled_back = False

    @asynccontextmanager
    async def begin(self):
        try:
            yield self
        except BaseException:
            self.rolled_back = True
            raise
        self.committed = True


def _factory(session: _TransactionSession) -> PgUnitOfWorkFactory:
    @asynccontextmanager
    async def session_factory():
        yield session

    return PgUnitOfWorkFactory(session_factory)  # type: ignore[arg-type]


def test_pg_unit_of_work_defers_constraints_and_commits() -> None:
    session = _TransactionSession()

    async def scenario():
        async with _factory(session).begin() as uow:
            assert isinstance(uow.progress, PgProgressRepo)
            assert isinstance(uow.certificates, PgCertificateRepo)

    asyncio.run(scenario())
    assert _sql(session.statements[0]) == "SET CONSTRAINTS ALL DEFERRED"
    assert session.committed is True


def test_pg_unit_of_work_maps_unique_violation_to_conflict() -> None:
    session = _TransactionSession()

    async def scenario():
        async with _factory(session).begin():
            raise IntegrityError("INSERT ...", {}, _PgError("23505"))

    with pytest.raises(ConflictError):
        asyncio.run(scenario())
    assert session.rolled_back is True
    assert session.committed is False


def test_pg_unit_of_work_maps_deadlock_to_conflict() -> None:
    session = _TransactionSession()

    async def scenario():
        async with _factory(session).begin():
            raise OperationalError("UPDATE ...", {}, _PgError("40P01"))

    with pytest.raises(ConflictError):
        asyncio.run(scenario())


def test_pg_unit_of_work_maps_unknown_db_error_to_internal() -> None:
    session = _TransactionSession()

    async def scenario():
        async with _factory(session).begin():
            raise OperationalError("SELECT 1", {}, _PgError("08006"))

    with pytest.raises(InternalError):
        asyncio.run(scenario())
