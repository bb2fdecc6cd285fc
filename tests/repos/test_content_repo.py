from __future__ import annotations

import asyncio

from app.models.content import Language
from app.repos.content_repo import InMemoryContentRepo, seed_sample_content


def test_seed_sample_content_is_idempotent() -> None:
    repo = InMemoryContentRepo()
    assert repo.is_empty() is True
    seed_sample_content(repo)
    seed_sample_content(repo)
    assert repo.is_empty() is False
    assert asyncio.run(repo.get_series("rust", "rust-series")).lessons_count == 2


def test_seed_skips_a_repo_that_already_has_content() -> None:
    repo = InMemoryContentRepo()
    repo.add_language(Language(id=9, slug="go", name="Go"))
    seed_sample_content(repo)
    assert asyncio.run(repo.get_language("rust")) is None


def test_lookups_respect_the_parent_chain() -> None:
    repo = InMemoryContentRepo()
    seed_sample_content(repo)
    assert asyncio.run(repo.get_lesson("rust", "rust-series", 1, 1)) is not None
    assert asyncio.run(repo.get_lesson("rust", "rust-series", 2, 1)) is None
    assert asyncio.run(repo.get_series("go", "rust-series")) is None
    assert asyncio.run(repo.get_section("rust", "other", 1)) is None
