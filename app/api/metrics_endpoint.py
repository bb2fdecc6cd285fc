"""Prometheus scrape endpoint.

Serves everything declared in app.core.metrics in text exposition format,
e.g.:

  progress_operations_total{level="lesson",operation="complete"} 42.0
  certificates_issued_total 3.0

Not included in the OpenAPI schema.  Restrict it at the ingress in
production; label values reveal request rates per route.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
