"""Domain models package."""

from .tool import (
    Source,
    PendingToolCall,
    ToolCall,
    ToolResult,
    ToolSchema,
    ToolExecutionContext,
)
from .conversation import (
    MessageRole,
    LoopState,
    ConversationTurn,
    ConversationHistory,
)
from .response import ParseTier, ExtractedResponse, ParsedResponse
from .events import (
    TokenDelta,
    ToolUseStart,
    ToolInputDelta,
    ToolUseStop,
    MessageStop,
    StreamError,
    SearchResultsFound,
    StreamEvent,
    ReplyToken,
    ReplySources,
    ReplyDone,
    ReplyError,
    ReplyEvent,
    is_terminal,
)

__all__ = [
    "Source",
    "PendingToolCall",
    "ToolCall",
    "ToolResult",
    "ToolSchema",
    "ToolExecutionContext",
    "MessageRole",
    "LoopState",
    "ConversationTurn",
    "ConversationHistory",
    "ParseTier",
    "ExtractedResponse",
    "ParsedResponse",
    "TokenDelta",
    "ToolUseStart",
    "ToolInputDelta",
    "ToolUseStop",
    "MessageStop",
    "StreamError",
    "SearchResultsFound",
    "StreamEvent",
    "ReplyToken",
    "ReplySources",
    "ReplyDone",
    "ReplyError",
    "ReplyEvent",
    "is_terminal",
]
