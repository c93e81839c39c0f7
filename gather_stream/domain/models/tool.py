"""
Tool domain models - Pure business logic for tool operations.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
import json


@dataclass(frozen=True)
class Source:
    """A citation attached to search-grounded claims."""
    title: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "url": self.url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional[Source]:
        """Create a Source from a result dict; None when url or title is missing."""
        url = data.get("url")
        title = data.get("title")
        if not isinstance(url, str) or not url:
            return None
        if not isinstance(title, str) or not title:
            return None
        return cls(title=title, url=url)


@dataclass
class PendingToolCall:
    """A tool-use block whose JSON input is still streaming in."""
    id: str
    name: str
    input_buffer: str = ""

    def append(self, fragment: str) -> None:
        self.input_buffer += fragment

    def complete(self) -> Optional[ToolCall]:
        """Parse the buffered input; None if it is not a JSON object."""
        raw = self.input_buffer.strip() or "{}"
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        return ToolCall(id=self.id, name=self.name, input=data)


@dataclass(frozen=True)
class ToolCall:
    """Represents a tool call request."""
    id: str
    name: str
    input: Dict[str, Any]

    def to_content_block(self) -> Dict[str, Any]:
        """Convert to a `tool_use` content block for conversation history."""
        return {
            "type": "tool_use",
            "id": self.id,
            "name": self.name,
            "input": dict(self.input),
        }


@dataclass
class ToolResult:
    """Result of tool execution."""
    tool_call_id: str
    text: str
    sources: List[Source] = field(default_factory=list)
    success: bool = True
    execution_time_ms: Optional[float] = None

    def to_content_block(self) -> Dict[str, Any]:
        """Convert to a `tool_result` content block for conversation history."""
        block: Dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": self.tool_call_id,
            "content": self.text,
        }
        if not self.success:
            block["is_error"] = True
        return block


@dataclass
class ToolSchema:
    """Schema definition for a tool."""
    name: str
    description: str
    input_schema: Dict[str, Any]

    def to_api_format(self) -> Dict[str, Any]:
        """Convert to the provider's tool declaration format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass
class ToolExecutionContext:
    """Context for tool execution within one request."""
    request_id: Optional[str] = None
    max_rounds: int = 5
    current_round: int = 0
    timeout_s: Optional[float] = None

    def can_start_round(self) -> bool:
        """Check if another tool round trip is allowed."""
        return self.current_round < self.max_rounds

    def next_round(self) -> None:
        """Move to next execution round."""
        self.current_round += 1
