"""LangGraph nodes of the tool loop."""

from agent_runtime.platform.agent.nodes.base import Node, finish_reason, message_text, raw_response
from agent_runtime.platform.agent.nodes.reasoner import ReasonerNode
from agent_runtime.platform.agent.nodes.tools import ToolsNode

__all__ = [
    "Node",
    "ReasonerNode",
    "ToolsNode",
    "finish_reason",
    "message_text",
    "raw_response",
]
