"""Structured logging for the agent runtime.

JSON lines in prod/dev, colored console output locally. Every entry carries
the request correlation ID and, while a run is in progress, the identifiers
of that agent run so tool calls and trace fallbacks can be tied back to it.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

import structlog

# Request correlation ID, set by CorrelationIdMiddleware
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "uvicorn.access",
    "LiteLLM",
    "LiteLLM Router",
    "LiteLLM Proxy",
    "opentelemetry",
)


def add_correlation_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Processor that adds correlation_id to every log entry."""
    if correlation_id := correlation_id_ctx.get():
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


@contextmanager
def agent_run_context(
    agent_run_id: str,
    session_id: str | None = None,
    workflow_run_id: str | None = None,
) -> Iterator[None]:
    """Bind agent run identifiers to every log entry emitted inside the block.

    Args:
        agent_run_id: Run being executed
        session_id: Conversation session of the run
        workflow_run_id: Enclosing workflow run, if any
    """
    context = {"agent_run_id": agent_run_id, "session_id": session_id, "workflow_run_id": workflow_run_id}
    with structlog.contextvars.bound_contextvars(**{k: v for k, v in context.items() if v}):
        yield


def configure_logging(log_level: str, json_output: bool = True) -> None:
    """Configure structlog and route stdlib loggers through the same renderer.

    Args:
        log_level: Logging level name, case-insensitive
        json_output: True for JSON output (prod/dev), False for console (local)
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_correlation_id,
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if json_output:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
