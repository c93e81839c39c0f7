"""
Stream event models - typed events decoded from the provider stream and the
reply events the loop controller emits towards the client.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Union

from .tool import Source


# ---------- Provider stream events ----------

@dataclass(frozen=True)
class TokenDelta:
    """Incremental fragment of generated text."""
    text: str


@dataclass(frozen=True)
class ToolUseStart:
    """The model opened a tool-use content block."""
    id: str
    name: str


@dataclass(frozen=True)
class ToolInputDelta:
    """A fragment of the JSON input for an open tool-use block."""
    id: str
    partial_json: str


@dataclass(frozen=True)
class ToolUseStop:
    """The model closed a tool-use content block."""
    id: str


@dataclass(frozen=True)
class MessageStop:
    """End of one model message."""
    stop_reason: Optional[str] = None


@dataclass(frozen=True)
class StreamError:
    """Error reported in-band by the provider."""
    message: str


@dataclass(frozen=True)
class SearchResultsFound:
    """Sources delivered by a provider-executed web search block."""
    sources: List[Source] = field(default_factory=list)


StreamEvent = Union[
    TokenDelta,
    ToolUseStart,
    ToolInputDelta,
    ToolUseStop,
    MessageStop,
    StreamError,
    SearchResultsFound,
]


# ---------- Reply events (controller -> client relay) ----------

@dataclass(frozen=True)
class ReplyToken:
    """Token forwarded to the client as soon as it is received."""
    text: str

    event_name = "token"

    def to_payload(self) -> Dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class ReplySources:
    """Ranked sources for the finished reply."""
    sources: List[Source]

    event_name = "sources"

    def to_payload(self) -> Dict[str, Any]:
        return {"sources": [s.to_dict() for s in self.sources]}


@dataclass(frozen=True)
class ReplyDone:
    """Terminal success event carrying the validated reply."""
    response: str
    sources: List[Source]
    actions: List[Dict[str, Any]]

    event_name = "done"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "response": self.response,
            "sources": [s.to_dict() for s in self.sources],
            "actions": list(self.actions),
        }


@dataclass(frozen=True)
class ReplyError:
    """Terminal failure event; ``code`` classifies it for non-streaming callers."""
    message: str
    code: str = "internal"

    event_name = "error"

    def to_payload(self) -> Dict[str, Any]:
        return {"message": self.message}


ReplyEvent = Union[ReplyToken, ReplySources, ReplyDone, ReplyError]


def is_terminal(event: ReplyEvent) -> bool:
    """Check if a reply event ends the stream."""
    return isinstance(event, (ReplyDone, ReplyError))
