"""Observability for agent runs and the HTTP service.

- structlog logging with correlation and agent run identifiers
- Prometheus HTTP metrics (agent metrics live in ``platform.agent.metrics``)
- Bugsnag error reporting
"""

from agent_runtime.platform.observability.logging import (
    agent_run_context,
    configure_logging,
    correlation_id_ctx,
    get_logger,
)
from agent_runtime.platform.observability.metrics import prometheus_middleware, setup_http_metrics

__all__ = [
    "agent_run_context",
    "configure_logging",
    "correlation_id_ctx",
    "get_logger",
    "prometheus_middleware",
    "setup_http_metrics",
]
