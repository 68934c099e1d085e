from __future__ import annotations

"""Agent package for the tool-calling chat assistant.

This package exposes a service-style interface for the chat agent while keeping
implementation details (catalog, prompt, completion gateway, tool execution,
reply finishing) organized in separate modules.
"""

from .agent import (
    ChatOutcome,
    ToolChatService,
    get_chat_service,
    set_chat_service,
)

__all__ = [
    "ChatOutcome",
    "ToolChatService",
    "get_chat_service",
    "set_chat_service",
]
