"""Coding agent backend: subprocess launch, transcript capture, shutdown."""

from claude_queue.agent.base import AgentRunRequest, AgentRunResult, ProcessSlot
from claude_queue.agent.cli_backend import AgentRunError, CliAgentBackend

__all__ = [
    "AgentRunError",
    "AgentRunRequest",
    "AgentRunResult",
    "CliAgentBackend",
    "ProcessSlot",
]
