"""Agent run HTTP endpoints.

This module exposes the agent runner over REST, either as a single JSON
response or as a Server-Sent Events stream of agent trace events.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Depends, Header
from fastapi.responses import StreamingResponse

from agent_runtime.platform.agent.config import AgentRunRequest
from agent_runtime.platform.agent.errors import AgentRuntimeError
from agent_runtime.platform.agent.messages import AgentRunOutput
from agent_runtime.platform.agent.runner import AgentRunContext, AgentRunner
from agent_runtime.platform.agent.stream import AgentTraceEvent, QueueTraceSink
from agent_runtime.platform.server.dependencies.agents import get_run_context, get_runner

logger = logging.getLogger(__name__)

agent_router = APIRouter(prefix="/agent", tags=["agents"])

_STREAM_END = object()


@agent_router.post(
    "/run",
    response_model=AgentRunOutput,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def run_agent(
    payload: AgentRunRequest,
    runner: AgentRunner = Depends(get_runner),
    context: AgentRunContext = Depends(get_run_context),
) -> AgentRunOutput:
    """Run the agent once and return the complete output.

    Args:
        payload: User input, memory, model selection and run settings
        runner: Shared agent runner (injected dependency)
        context: Run collaborators built from app state (injected dependency)

    Returns:
        The agent run output, including updated conversation memory
    """
    return await runner.run(payload, context)


def _sse(data: dict[str, Any]) -> str:
    return f"data: {json.dumps(data, default=str)}\n\n"


def _error_frame(error: Exception) -> dict[str, Any]:
    frame: dict[str, Any] = {"type": "error", "message": str(error)}
    if isinstance(error, AgentRuntimeError):
        frame["details"] = error.details
        frame["retryable"] = error.retryable
    return frame


@agent_router.post("/stream")
async def stream_agent(
    payload: AgentRunRequest,
    runner: AgentRunner = Depends(get_runner),
    context: AgentRunContext = Depends(get_run_context),
    workflow_run_id: str | None = Header(None, alias="X-Workflow-Run-ID"),
    node_ref: str | None = Header(None, alias="X-Node-Ref"),
) -> StreamingResponse:
    """Run the agent and stream its trace events.

    Every trace event is sent as an SSE ``data:`` frame as soon as it is
    recorded. The stream ends with a ``result`` frame carrying the run
    output, or an ``error`` frame if the run failed.

    Args:
        payload: User input, memory, model selection and run settings
        runner: Shared agent runner (injected dependency)
        context: Run collaborators built from app state (injected dependency)
        workflow_run_id: Optional workflow run stamped on every event
        node_ref: Optional workflow node reference stamped on every event

    Returns:
        Streaming response of SSE frames
    """
    queue: asyncio.Queue[AgentTraceEvent | object] = asyncio.Queue()
    stream_context = AgentRunContext(
        run_id=str(uuid.uuid4()),
        workflow_run_id=workflow_run_id,
        node_ref=node_ref,
        trace_sink=QueueTraceSink(queue),
        secrets=context.secrets,
        http_client=context.http_client,
    )

    async def execute() -> dict[str, Any]:
        try:
            output = await runner.run(payload, stream_context)
            return {
                "type": "result",
                "output": output.model_dump(mode="json", by_alias=True, exclude_none=True),
            }
        except Exception as e:
            logger.exception(f"Streaming agent run {stream_context.run_id} failed")
            return _error_frame(e)
        finally:
            queue.put_nowait(_STREAM_END)

    async def generate() -> AsyncIterator[str]:
        task = asyncio.create_task(execute())
        try:
            while (event := await queue.get()) is not _STREAM_END:
                yield _sse(event.model_dump(mode="json", by_alias=True, exclude_none=True))  # type: ignore[union-attr]
            yield _sse(await task)
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
