"""Agent interface module for LLM tool usage."""

from __future__ import annotations

from energycoach.agent.response import AgentResponse, create_response, error_response

__all__ = [
    "AgentResponse",
    "create_response",
    "error_response",
]
