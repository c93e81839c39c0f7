"""Domain layer - Pure business logic with no I/O of its own."""

from .models import (
    Source,
    ToolCall,
    ToolResult,
    ConversationHistory,
    ParsedResponse,
    LoopState,
)

__all__ = [
    "Source",
    "ToolCall",
    "ToolResult",
    "ConversationHistory",
    "ParsedResponse",
    "LoopState",
]
