"""Unit tests for structured logging helpers."""

import structlog

from agent_runtime.platform.observability.logging import (
    add_correlation_id,
    agent_run_context,
    correlation_id_ctx,
)


class TestAgentRunContext:
    """Tests for agent_run_context."""

    def test_binds_and_unbinds_run_identifiers(self):
        with agent_run_context("run-1", "session-1", "wf-1"):
            assert structlog.contextvars.get_contextvars() == {
                "agent_run_id": "run-1",
                "session_id": "session-1",
                "workflow_run_id": "wf-1",
            }
        assert "agent_run_id" not in structlog.contextvars.get_contextvars()

    def test_missing_identifiers_are_not_bound(self):
        with agent_run_context("run-1"):
            assert structlog.contextvars.get_contextvars() == {"agent_run_id": "run-1"}


class TestAddCorrelationId:
    def test_adds_current_correlation_id(self):
        token = correlation_id_ctx.set("req-1")
        try:
            assert add_correlation_id(None, "info", {"event": "x"}) == {
                "event": "x",
                "correlation_id": "req-1",
            }
        finally:
            correlation_id_ctx.reset(token)

    def test_no_correlation_id(self):
        assert add_correlation_id(None, "info", {"event": "x"}) == {"event": "x"}
