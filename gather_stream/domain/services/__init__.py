"""Domain services package."""

from .stream_decoder import EventStreamDecoder, LineBuffer, decode_stream
from .response_parser import parse_full, parse_partial, extract_json, clean_message
from .schema_validator import validate_or_default, validate_actions, reduce_chat_text, parse_structured
from .source_ranker import RankingPolicy, rank_sources
from .tool_orchestrator import ToolOrchestrator
from .agent_loop import AgentLoopController

__all__ = [
    "EventStreamDecoder",
    "LineBuffer",
    "decode_stream",
    "parse_full",
    "parse_partial",
    "extract_json",
    "clean_message",
    "validate_or_default",
    "validate_actions",
    "reduce_chat_text",
    "parse_structured",
    "RankingPolicy",
    "rank_sources",
    "ToolOrchestrator",
    "AgentLoopController",
]
