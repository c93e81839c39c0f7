"""Domain interfaces package - Protocols for ports."""

from .llm_client import LLMClient
from .tool_plugin import ToolPlugin, ToolRegistry

__all__ = [
    "LLMClient",
    "ToolPlugin",
    "ToolRegistry",
]
