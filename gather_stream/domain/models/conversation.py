"""
Conversation domain models - Pure business logic for chat interactions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Union
from enum import Enum

from .tool import ToolCall, ToolResult


class MessageRole(Enum):
    """Message roles in conversation."""
    USER = "user"
    ASSISTANT = "assistant"


class LoopState(Enum):
    """States of the agentic loop for one request."""
    STREAMING = "streaming"
    EXECUTING_TOOLS = "executing_tools"
    CONTINUING = "continuing"
    REDUCING = "reducing"
    DONE = "done"
    ERROR = "error"


Content = Union[str, List[Dict[str, Any]]]


@dataclass(frozen=True)
class ConversationTurn:
    """One role-attributed history entry, possibly carrying tool blocks."""
    role: MessageRole
    content: Content

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for API calls."""
        if isinstance(self.content, str):
            content: Content = self.content
        else:
            content = [dict(block) for block in self.content]
        return {"role": self.role.value, "content": content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ConversationTurn:
        """Create a turn from a client-supplied history entry."""
        role_str = data.get("role", "user")
        try:
            role = MessageRole(role_str)
        except ValueError:
            role = MessageRole.USER
        return cls(role=role, content=data.get("content", ""))

    def tool_use_ids(self) -> List[str]:
        if isinstance(self.content, str):
            return []
        return [b.get("id", "") for b in self.content if b.get("type") == "tool_use"]

    def tool_result_ids(self) -> List[str]:
        if isinstance(self.content, str):
            return []
        return [b.get("tool_use_id", "") for b in self.content if b.get("type") == "tool_result"]


@dataclass
class ConversationHistory:
    """Append-only, request-scoped conversation log.

    An assistant turn that requests tools must be followed by a user turn
    carrying a result for every requested tool id before the next model
    turn can be requested. Violations raise ``ValueError``.
    """
    turns: List[ConversationTurn] = field(default_factory=list)
    system_prompt: Optional[str] = None

    def __post_init__(self) -> None:
        # Re-validate seeded turns through the same path as appends
        seeded, self.turns = list(self.turns), []
        for turn in seeded:
            self.append(turn)

    def __len__(self) -> int:
        return len(self.turns)

    @property
    def awaiting_tool_results(self) -> List[str]:
        """Tool ids from the last turn still waiting for results."""
        if not self.turns:
            return []
        last = self.turns[-1]
        if last.role is MessageRole.ASSISTANT:
            return last.tool_use_ids()
        return []

    def append(self, turn: ConversationTurn) -> None:
        """Append a turn, enforcing tool_use/tool_result pairing."""
        pending = self.awaiting_tool_results
        if pending:
            if turn.role is not MessageRole.USER:
                raise ValueError("tool_use turn must be followed by a user turn with tool results")
            missing = set(pending) - set(turn.tool_result_ids())
            if missing:
                raise ValueError(f"missing tool results for: {sorted(missing)}")
        elif turn.tool_result_ids():
            raise ValueError("tool_result blocks without a preceding tool_use turn")
        self.turns.append(turn)

    def add_user_message(self, content: str) -> None:
        """Convenience method to add user message."""
        self.append(ConversationTurn(role=MessageRole.USER, content=content))

    def add_assistant_message(self, content: str) -> None:
        """Convenience method to add assistant message."""
        self.append(ConversationTurn(role=MessageRole.ASSISTANT, content=content))

    def add_tool_round(self, text: str, calls: List[ToolCall], results: List[ToolResult]) -> None:
        """Append the assistant tool-use turn and the matching tool-result turn."""
        blocks: List[Dict[str, Any]] = []
        if text.strip():
            blocks.append({"type": "text", "text": text})
        blocks.extend(call.to_content_block() for call in calls)
        self.append(ConversationTurn(role=MessageRole.ASSISTANT, content=blocks))
        self.append(ConversationTurn(
            role=MessageRole.USER,
            content=[result.to_content_block() for result in results],
        ))

    def ready_for_model(self) -> bool:
        """Check whether the next model turn can be requested."""
        return bool(self.turns) and self.turns[-1].role is MessageRole.USER

    def get_messages_for_api(self) -> List[Dict[str, Any]]:
        """Get turns formatted for the provider API."""
        return [turn.to_dict() for turn in self.turns]

    def clear(self) -> None:
        """History is append-only within a request."""
        raise ValueError("conversation history is append-only")
