"""Infrastructure endpoints: health, service info and Prometheus metrics."""

import logging
from enum import Enum

from fastapi import APIRouter, Request, Response

from agent_runtime.platform.observability.metrics import metrics as prom_metrics
from agent_runtime.platform.server.health import HealthCheck, metadata

logger = logging.getLogger(__name__)

base_router = APIRouter()
base_tags: list[Enum | str] = ["base"]


@base_router.get("/health", tags=base_tags)
async def health():
    """200 while serving; 404 once shutdown draining has started."""
    if HealthCheck.status():
        return {"status": "OK"}
    logger.info("health-check: fail. disabled")
    return Response(status_code=404)


@base_router.get("/info", tags=base_tags)
async def info(request: Request):
    """Service metadata plus whether run traces are published to an ingest endpoint."""
    trace_sink = getattr(request.app.state, "trace_sink", None)
    return {**metadata.info(), "trace_sink": repr(trace_sink) if trace_sink else None}


@base_router.get("/metrics", tags=base_tags)
async def metrics():
    body, media_type = prom_metrics()
    return Response(body, media_type=media_type)
