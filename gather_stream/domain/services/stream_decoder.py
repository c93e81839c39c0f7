"""
Stream decoder service - turns provider wire bytes into typed stream events.
Pure incremental decoding: no I/O beyond iterating the byte source.
"""

from __future__ import annotations
import codecs
import json
import logging
from typing import AsyncIterator, Dict, Iterable, Iterator, List, Optional, Any

from ..models.events import (
    StreamEvent,
    TokenDelta,
    ToolUseStart,
    ToolInputDelta,
    ToolUseStop,
    MessageStop,
    StreamError,
    SearchResultsFound,
)
from ..models.tool import Source


class LineBuffer:
    """Incremental line splitter for byte streams.

    Multi-byte UTF-8 sequences split across reads are held by the decoder;
    the trailing partial line is retained until the next ``feed``.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> List[str]:
        """Add raw bytes and return every line completed by them."""
        if not chunk:
            return []
        self._pending += self._decoder.decode(chunk)
        return self._split()

    def flush(self) -> List[str]:
        """Drain the final unterminated line at end of input."""
        self._pending += self._decoder.decode(b"", final=True)
        lines = self._split()
        if self._pending:
            lines.append(self._pending.rstrip("\r"))
            self._pending = ""
        return lines

    def _split(self) -> List[str]:
        parts = self._pending.split("\n")
        self._pending = parts.pop()
        return [p[:-1] if p.endswith("\r") else p for p in parts]


class EventStreamDecoder:
    """Decodes newline-delimited ``event:``/``data:`` lines into ``StreamEvent``s.

    One decoder instance serves one upstream response; it tracks the
    content-block index of each tool-use block so that index-addressed
    deltas resolve to the tool id.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(__name__)
        self._lines = LineBuffer()
        self._tool_ids: Dict[int, str] = {}
        self._stop_reason: Optional[str] = None

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        """Feed one physical read; return the events it completed."""
        events: List[StreamEvent] = []
        for line in self._lines.feed(chunk):
            event = self._decode_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[StreamEvent]:
        """Decode whatever remains buffered at end of input."""
        events: List[StreamEvent] = []
        for line in self._lines.flush():
            event = self._decode_line(line)
            if event is not None:
                events.append(event)
        return events

    def _decode_line(self, line: str) -> Optional[StreamEvent]:
        if not line.startswith("data:"):
            # event: names are redundant with the payload type; blanks and
            # comments carry nothing
            return None
        payload = line[5:].strip()
        if not payload or payload == "[DONE]":
            return None
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            self._logger.debug(f"Skipping malformed stream line: {payload[:80]}")
            return None
        if not isinstance(data, dict):
            return None
        try:
            return self._map_payload(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            self._logger.debug(f"Skipping unexpected stream payload ({e}): {payload[:80]}")
            return None

    def _map_payload(self, data: Dict[str, Any]) -> Optional[StreamEvent]:
        kind = data.get("type")

        if kind == "content_block_start":
            index = int(data.get("index", -1))
            block = data.get("content_block") or {}
            block_type = block.get("type")
            if block_type == "tool_use":
                tool_id = str(block.get("id", ""))
                self._tool_ids[index] = tool_id
                return ToolUseStart(id=tool_id, name=str(block.get("name", "")))
            if block_type == "web_search_tool_result":
                return SearchResultsFound(sources=_sources_from_block(block.get("content")))
            return None

        if kind == "content_block_delta":
            index = int(data.get("index", -1))
            delta = data.get("delta") or {}
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                text = delta.get("text", "")
                return TokenDelta(text=text) if text else None
            if delta_type == "input_json_delta":
                return ToolInputDelta(
                    id=self._tool_ids.get(index, ""),
                    partial_json=str(delta.get("partial_json", "")),
                )
            return None

        if kind == "content_block_stop":
            index = int(data.get("index", -1))
            tool_id = self._tool_ids.pop(index, None)
            return ToolUseStop(id=tool_id) if tool_id is not None else None

        if kind == "message_delta":
            reason = (data.get("delta") or {}).get("stop_reason")
            if reason:
                self._stop_reason = str(reason)
            return None

        if kind == "message_stop":
            reason, self._stop_reason = self._stop_reason, None
            return MessageStop(stop_reason=reason)

        if kind == "error":
            err = data.get("error") or {}
            message = err.get("message") if isinstance(err, dict) else str(err)
            return StreamError(message=str(message or "upstream stream error"))

        # message_start, ping and future event types
        return None


def _sources_from_block(content: Any) -> List[Source]:
    if not isinstance(content, list):
        return []
    sources: List[Source] = []
    for item in content:
        if isinstance(item, dict) and item.get("type", "web_search_result") == "web_search_result":
            src = Source.from_dict(item)
            if src is not None:
                sources.append(src)
    return sources


def decode_chunks(chunks: Iterable[bytes], logger: Optional[logging.Logger] = None) -> Iterator[StreamEvent]:
    """Synchronous decode helper over an iterable of byte chunks."""
    decoder = EventStreamDecoder(logger=logger)
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.flush()


async def decode_stream(
    byte_iter: AsyncIterator[bytes],
    logger: Optional[logging.Logger] = None,
) -> AsyncIterator[StreamEvent]:
    """Async adapter: yield events as soon as each line completes."""
    decoder = EventStreamDecoder(logger=logger)
    async for chunk in byte_iter:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.flush():
        yield event
