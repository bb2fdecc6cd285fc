from __future__ import annotations

import asyncio
import uuid

from fastapi.testclient import TestClient

from app.main import app
from app.models.certificate import Certificate
from app.models.content import Series

LESSONS = "/api/v1/languages/rust/series/rust-series/sections/1/lessons"


def _complete_rust_series(client: TestClient, headers: dict[str, str]) -> dict:
    client.patch(f"{LESSONS}/1/progress/complete", headers=headers)
    resp = client.patch(f"{LESSONS}/2/progress/complete", headers=headers)
    return resp.json()["certificate"]


def _seed_certificates(user_id: str, count: int) -> None:
    certificates = app.state.uow_factory.certificates
    for n in range(1, count + 1):
        series = Series(
            id=100 + n,
            language_slug="rust",
            slug=f"series-{n}",
            title=f"Series {n}",
            lessons_count=n,
            is_published=True,
        )
        asyncio.run(
            certificates.add(
                Certificate.new(user_id=user_id, series=series, completed_at=n)
            )
        )


def test_list_requires_auth(client: TestClient) -> None:
    assert client.get("/api/v1/certificates").status_code == 401


def test_list_empty(client: TestClient, auth_headers: dict[str, str]) -> None:
    resp = client.get("/api/v1/certificates", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == {"items": [], "total": 0, "offset": 0, "limit": 25}


def test_list_after_completing_series(
    client: TestClient, auth_headers: dict[str, str]
) -> None:
    certificate = _complete_rust_series(client, auth_headers)
    page = client.get("/api/v1/certificates", headers=auth_headers).json()
    assert page["total"] == 1
    assert page["items"][0]["id"] == certificate["id"]
    assert page["items"][0]["user_id"] == "test-user"


def test_list_is_paginated_newest_first(
    client: TestClient, auth_headers: dict[str, str]
) -> None:
    _seed_certificates("test-user", 5)
    resp = client.get(
        "/api/v1/certificates",
        params={"offset": 1, "limit": 2},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    page = resp.json()
    assert page["total"] == 5
    assert page["offset"] == 1
    assert page["limit"] == 2
    assert [c["series_slug"] for c in page["items"]] == ["series-4", "series-3"]


def test_list_rejects_limit_out_of_range(
    client: TestClient, auth_headers: dict[str, str]
) -> None:
    resp = client.get(
        "/api/v1/certificates", params={"limit": 101}, headers=auth_headers
    )
    assert resp.status_code == 422


def test_list_only_shows_own_certificates(
    client: TestClient, auth_headers: dict[str, str]
) -> None:
    _seed_certificates("someone-else", 2)
    page = client.get("/api/v1/certificates", headers=auth_headers).json()
    assert page["total"] == 0


def test_public_lookup_needs_no_token(
    client: TestClient, auth_headers: dict[str, str]
) -> None:
    certificate = _complete_rust_series(client, auth_headers)
    resp = client.get(f"/api/v1/certificates/{certificate['id']}")
    assert resp.status_code == 200
    assert resp.json()["series_title"] == "Rust Series"


def test_public_lookup_unknown_id_is_404(client: TestClient) -> None:
    resp = client.get(f"/api/v1/certificates/{uuid.uuid4()}")
    assert resp.status_code == 404


def test_public_lookup_malformed_id_is_422(client: TestClient) -> None:
    assert client.get("/api/v1/certificates/not-a-uuid").status_code == 422
