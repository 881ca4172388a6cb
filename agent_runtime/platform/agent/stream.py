"""Ordered trace events for a single agent run.

The recorder assigns every event a sequence number from a counter it owns and
hands it to a trace sink in emission order. Sink publication is not awaited:
an awaitable returned by ``publish`` is scheduled as a detached task, and sink
failures are logged without affecting the run. Without a sink, events are
written to the progress log tagged ``[AgentTraceFallback]``.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

import httpx

from agent_runtime.platform.agent.messages import CamelModel, ReasoningStep
from agent_runtime.platform.constants import USER_AGENT
from agent_runtime.platform.observability.logging import get_logger

logger = get_logger(__name__)

FALLBACK_TAG = "[AgentTraceFallback]"

type ProgressCallback = Callable[[str, dict[str, Any]], None]


class AgentTraceEvent(CamelModel):
    """Envelope of one trace event.

    Attributes:
        agent_run_id: Run the event belongs to
        workflow_run_id: Enclosing workflow run, if any
        node_ref: Workflow node that hosts the agent, if any
        sequence: Position of the event within the run, starting at 1
        timestamp: ISO-8601 UTC emission time
        part: Tagged payload; ``part["type"]`` identifies the variant
    """

    agent_run_id: str
    workflow_run_id: str | None = None
    node_ref: str | None = None
    sequence: int
    timestamp: str
    part: dict[str, Any]


@runtime_checkable
class TraceSink(Protocol):
    """Destination for trace events."""

    def publish(self, event: AgentTraceEvent) -> Awaitable[None] | None:
        """Accept an event; may return an awaitable that completes delivery."""
        ...


class AgentStreamRecorder:
    """Emits the trace events of one agent run.

    One recorder exists per run; ``sequence`` is never shared between runs.
    """

    def __init__(
        self,
        agent_run_id: str,
        workflow_run_id: str | None = None,
        node_ref: str | None = None,
        sink: TraceSink | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Initialize the recorder.

        Args:
            agent_run_id: Identifier stamped on every event
            workflow_run_id: Enclosing workflow run identifier
            node_ref: Workflow node reference
            sink: Trace sink; events fall back to the progress log when None
            progress: Progress logger used for the fallback path
        """
        self.agent_run_id = agent_run_id
        self.workflow_run_id = workflow_run_id
        self.node_ref = node_ref
        self.sequence = 0
        self.active_text_id: str | None = None
        self._sink = sink
        self._progress = progress or _log_progress
        self._pending: set[asyncio.Future] = set()

    @property
    def text_id(self) -> str:
        return f"{self.agent_run_id}:text"

    def emit_message_start(self) -> AgentTraceEvent:
        return self._emit(
            {"type": "message-start", "messageId": self.agent_run_id, "role": "assistant"}
        )

    def emit_reasoning_step(self, step: ReasoningStep) -> AgentTraceEvent:
        return self._emit(
            {
                "type": "data-reasoning-step",
                "data": step.model_dump(mode="json", by_alias=True),
            }
        )

    def emit_tool_input(self, tool_call_id: str, tool_name: str, args: Any) -> AgentTraceEvent:
        return self._emit(
            {
                "type": "tool-input-available",
                "toolCallId": tool_call_id,
                "toolName": tool_name,
                "input": args,
            }
        )

    def emit_tool_output(self, tool_call_id: str, output: Any) -> AgentTraceEvent:
        return self._emit(
            {"type": "tool-output-available", "toolCallId": tool_call_id, "output": output}
        )

    def emit_tool_error(self, tool_call_id: str, tool_name: str, error: str) -> AgentTraceEvent:
        return self._emit(
            {
                "type": "data-tool-error",
                "data": {"toolCallId": tool_call_id, "toolName": tool_name, "error": error},
            }
        )

    def emit_text_delta(self, text: str) -> list[AgentTraceEvent]:
        """Stream a chunk of assistant text.

        The first non-blank chunk opens the text span before its delta is
        emitted. Blank chunks are dropped.

        Returns:
            Events emitted for this chunk, empty for blank text
        """
        if not text or not text.strip():
            return []
        events = []
        if self.active_text_id is None:
            self.active_text_id = self.text_id
            events.append(self._emit({"type": "data-text-start", "data": {"id": self.text_id}}))
        events.append(self._emit({"type": "text-delta", "id": self.text_id, "delta": text}))
        return events

    def emit_finish(self, finish_reason: str = "stop") -> list[AgentTraceEvent]:
        """Close any open text span, then emit the terminal ``finish`` event."""
        events = []
        if self.active_text_id is not None:
            events.append(
                self._emit({"type": "data-text-end", "data": {"id": self.active_text_id}})
            )
            self.active_text_id = None
        events.append(self._emit({"type": "finish", "finishReason": finish_reason}))
        return events

    async def drain(self) -> None:
        """Wait for outstanding sink publications to settle."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _emit(self, part: dict[str, Any]) -> AgentTraceEvent:
        self.sequence += 1
        event = AgentTraceEvent(
            agent_run_id=self.agent_run_id,
            workflow_run_id=self.workflow_run_id,
            node_ref=self.node_ref,
            sequence=self.sequence,
            timestamp=datetime.now(UTC).isoformat(),
            part=part,
        )
        if self._sink is None:
            self._progress(
                f"{FALLBACK_TAG} {part['type']}",
                event.model_dump(mode="json", by_alias=True),
            )
            return event

        try:
            result = self._sink.publish(event)
        except Exception as e:
            logger.warning(
                "agent_trace_publish_failed",
                agent_run_id=self.agent_run_id,
                sequence=event.sequence,
                error=str(e),
            )
            return event

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._on_publish_done)
        return event

    def _on_publish_done(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        if (error := task.exception()) is not None:
            logger.warning(
                "agent_trace_publish_failed",
                agent_run_id=self.agent_run_id,
                error=str(error),
            )


def _log_progress(message: str, envelope: dict[str, Any]) -> None:
    logger.info(message, envelope=envelope)


class HttpTraceSink:
    """Publishes events as JSON to an HTTP ingest endpoint."""

    def __init__(
        self,
        url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._http_client = http_client

    def __repr__(self) -> str:
        return f"HttpTraceSink(url={self.url!r}, timeout={self.timeout})"

    async def publish(self, event: AgentTraceEvent) -> None:
        payload = event.model_dump(mode="json", by_alias=True)
        headers = {"User-Agent": USER_AGENT}
        if self._http_client is not None:
            response = await self._http_client.post(
                self.url, json=payload, headers=headers, timeout=self.timeout
            )
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.url, json=payload, headers=headers, timeout=self.timeout
                )
        response.raise_for_status()


class QueueTraceSink:
    """Pushes events onto an asyncio queue without blocking."""

    def __init__(self, queue: asyncio.Queue[AgentTraceEvent]) -> None:
        self.queue = queue

    def publish(self, event: AgentTraceEvent) -> None:
        self.queue.put_nowait(event)
