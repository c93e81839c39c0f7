from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator

MAX_MESSAGE_CHARS = 2000
MAX_CONTEXT_CHARS = 10000
MAX_HISTORY_ENTRIES = 50


class HistoryEntry(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(max_length=MAX_MESSAGE_CHARS)


class ChatRequest(BaseModel):
    message: str = Field(max_length=MAX_MESSAGE_CHARS)
    context: Optional[Union[str, Dict[str, Any], List[Any]]] = Field(
        default=None,
        description="Task context: free text, or an object embedded as JSON in the prompt.",
    )
    history: List[HistoryEntry] = Field(default_factory=list, max_length=MAX_HISTORY_ENTRIES)
    stream: bool = Field(default=False, description="Return text/event-stream instead of a single JSON body")

    @field_validator("context")
    @classmethod
    def context_size(cls, v):
        if v is None:
            return v
        serialized = v if isinstance(v, str) else json.dumps(v, ensure_ascii=False, separators=(",", ":"))
        if len(serialized) > MAX_CONTEXT_CHARS:
            raise ValueError(f"context too long (max {MAX_CONTEXT_CHARS} characters)")
        return v


class SourceModel(BaseModel):
    title: str
    url: str


class ChatResponse(BaseModel):
    response: str
    sources: List[SourceModel] = Field(default_factory=list)
    actions: List[Dict[str, Any]] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
    code: Optional[str] = None
