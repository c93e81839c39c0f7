"""
Gather Stream - streaming chat orchestration with web search tool calls.
"""

__version__ = "1.0.0"
__author__ = "Gather Team"

__all__ = [
    "ChatService",
    "AgentLoopController",
    "parse_full",
    "parse_partial",
    "rank_sources",
]


# Lazy attribute access keeps `import gather_stream.domain...` cheap during test collection.
def __getattr__(name: str):  # pragma: no cover - simple lazy loader
    if name == "ChatService":
        from .application.chat_service import ChatService as _C
        return _C
    if name == "AgentLoopController":
        from .domain.services.agent_loop import AgentLoopController as _A
        return _A
    if name in {"parse_full", "parse_partial"}:
        from .domain.services import response_parser
        return getattr(response_parser, name)
    if name == "rank_sources":
        from .domain.services.source_ranker import rank_sources as _r
        return _r
    raise AttributeError(f"module 'gather_stream' has no attribute {name!r}")
