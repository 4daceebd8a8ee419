"""GET /metrics: Prometheus text exposition of the default registry.

Carries request counts by route template plus the credential counters
from app.core.metrics.  Nothing here is secret, but it maps the
service's traffic; expose it on the internal network only.
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
