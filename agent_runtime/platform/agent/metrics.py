"""Prometheus metrics for agent runs, model tokens and MCP tool calls."""

from time import monotonic
from types import TracebackType
from typing import NamedTuple, Self

import prometheus_client

from agent_runtime.platform.observability.metrics import BUCKETS


class AgentMetricsLabels(NamedTuple):
    provider: str
    mode: str


class ToolMetricsLabels(NamedTuple):
    tool_name: str
    source: str = ""


agent_runs_total = prometheus_client.Counter(
    "agent_runs_total",
    "Agent runs by provider, mode and outcome",
    labelnames=(*AgentMetricsLabels._fields, "status"),
)
agent_run_duration_seconds = prometheus_client.Histogram(
    "agent_run_duration_seconds",
    "Agent run duration (seconds)",
    labelnames=AgentMetricsLabels._fields,
    buckets=BUCKETS,
)
agent_llm_tokens_total = prometheus_client.Counter(
    "agent_llm_tokens_total",
    "Model tokens consumed by agent runs",
    labelnames=("provider", "model", "direction"),
)
agent_tool_calls_total = prometheus_client.Counter(
    "agent_tool_calls_total",
    "MCP tool calls by outcome",
    labelnames=(*ToolMetricsLabels._fields, "status"),
)
agent_tool_call_duration_seconds = prometheus_client.Histogram(
    "agent_tool_call_duration_seconds",
    "MCP tool call duration (seconds)",
    labelnames=ToolMetricsLabels._fields,
    buckets=BUCKETS,
)


def record_agent_tokens(provider: str, model: str, input_tokens: int, output_tokens: int) -> None:
    """Add token counts for one completion; zero counts are skipped."""
    if input_tokens > 0:
        agent_llm_tokens_total.labels(provider, model, "input").inc(input_tokens)
    if output_tokens > 0:
        agent_llm_tokens_total.labels(provider, model, "output").inc(output_tokens)


def record_tool_call(labels: ToolMetricsLabels, duration: float, error: bool = False) -> None:
    """Record the outcome and duration of one MCP tool call."""
    status = "error" if error else "success"
    agent_tool_calls_total.labels(*labels, status).inc()
    agent_tool_call_duration_seconds.labels(*labels).observe(duration)


class collect_agent_metrics:
    """Async context manager recording the duration and outcome of a run.

    Usage:
        async with collect_agent_metrics(AgentMetricsLabels("openai", "tool-loop")):
            ...
    """

    def __init__(self, labels: AgentMetricsLabels) -> None:
        self.labels = labels
        self._start = 0.0

    async def __aenter__(self) -> Self:
        self._start = monotonic()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        status = "error" if exc_type is not None else "success"
        agent_runs_total.labels(*self.labels, status).inc()
        agent_run_duration_seconds.labels(*self.labels).observe(monotonic() - self._start)
        return False
