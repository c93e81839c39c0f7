"""
LLM client protocol interface.
Defines the contract for the upstream streaming provider.
"""

from __future__ import annotations
from typing import Protocol, List, Dict, Any, Optional, AsyncContextManager, AsyncIterator
from ..models.tool import ToolSchema


class LLMClient(Protocol):
    """Protocol for streaming LLM client implementations."""

    def stream_messages(
        self,
        messages: List[Dict[str, Any]],
        system: Optional[str] = None,
        tools: Optional[List[ToolSchema]] = None,
    ) -> AsyncContextManager[AsyncIterator[bytes]]:
        """Open one streaming call; the context yields raw wire bytes.

        Leaving the context closes the upstream response.
        """
        ...

    def get_model_info(self) -> Dict[str, Any]:
        """Get information about the current model."""
        ...
