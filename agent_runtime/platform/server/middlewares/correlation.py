"""Request correlation ID propagation."""

import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from agent_runtime.platform.observability.logging import correlation_id_ctx

REQUEST_ID_HEADER = "X-Request-ID"
WORKFLOW_RUN_HEADER = "X-Workflow-Run-ID"

MAX_CORRELATION_ID_LENGTH = 128
_UNSAFE = re.compile(r"[^A-Za-z0-9._:\-]")


def correlation_id_for(request: Request) -> str:
    """Correlation ID of a request.

    Prefers ``X-Request-ID``, then the workflow run of agent calls, else a new
    UUID. Inbound values are reduced to a safe character set and length.
    """
    inbound = request.headers.get(REQUEST_ID_HEADER) or request.headers.get(WORKFLOW_RUN_HEADER)
    if inbound and (cleaned := _UNSAFE.sub("", inbound)[:MAX_CORRELATION_ID_LENGTH]):
        return cleaned
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Stores the correlation ID for logging and echoes it in ``X-Request-ID``."""

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = correlation_id_for(request)
        token = correlation_id_ctx.set(correlation_id)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = correlation_id
            return response
        finally:
            correlation_id_ctx.reset(token)
