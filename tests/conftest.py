from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.main import app  # noqa: E402
from app.repos.content_repo import seed_sample_content  # noqa: E402
from app.repos.unit_of_work import InMemoryUnitOfWorkFactory  # noqa: E402
from app.services import token_service  # noqa: E402


@pytest.fixture(autouse=True)
def reset_progress_state() -> None:
    """Empty every in-memory store and re-seed the sample rust series."""
    factory = app.state.uow_factory
    assert isinstance(factory, InMemoryUnitOfWorkFactory), "tests need in-memory repos"
    factory.clear()
    seed_sample_content(factory.content)


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


@pytest.fixture
def token() -> str:
    """Token with default role (user)."""
    return mint_token()


@pytest.fixture
def staff_token() -> str:
    return mint_token(username="test-staff", roles=["staff"])


@pytest.fixture
def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
