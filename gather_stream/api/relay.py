"""
Client relay - serializes reply events into the outbound text/event-stream
protocol, and parses that protocol back for stream consumers.

Wire format per event::

    event: <token|sources|done|error>
    data: <json payload>
    <blank line>
"""

from __future__ import annotations
import contextlib
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from ..domain.models.events import ReplyError, ReplyEvent, is_terminal
from ..domain.services.stream_decoder import LineBuffer

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: str, payload: Dict[str, Any]) -> str:
    """Frame one named event."""
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


def encode_event(event: ReplyEvent) -> str:
    return format_sse(event.event_name, event.to_payload())


async def relay_events(events: AsyncIterator[ReplyEvent]) -> AsyncIterator[str]:
    """Frame each reply event as soon as it is produced.

    Stops after the first terminal event. If the source ends without one,
    an ``error`` event is emitted so clients never wait on a silent close.
    Closing this iterator closes ``events``.
    """
    async with contextlib.aclosing(events) as source:
        async for event in source:
            yield encode_event(event)
            if is_terminal(event):
                return
    logger.warning("Reply stream ended without a terminal event")
    yield encode_event(ReplyError(message="Stream ended unexpectedly"))


@dataclass
class RelayMessage:
    """One parsed event from a relay stream."""
    event: str
    data: Any

    @property
    def terminal(self) -> bool:
        return self.event in ("done", "error")


class RelayStreamParser:
    """Incremental parser for the relay's event-stream framing."""

    def __init__(self) -> None:
        self._lines = LineBuffer()
        self._event: Optional[str] = None
        self._data: List[str] = []

    def feed(self, chunk: bytes) -> List[RelayMessage]:
        return self._consume(self._lines.feed(chunk))

    def flush(self) -> List[RelayMessage]:
        messages = self._consume(self._lines.flush())
        # A final event without its blank separator still counts
        pending = self._dispatch()
        if pending is not None:
            messages.append(pending)
        return messages

    def _consume(self, lines: List[str]) -> List[RelayMessage]:
        messages: List[RelayMessage] = []
        for line in lines:
            if not line:
                msg = self._dispatch()
                if msg is not None:
                    messages.append(msg)
            elif line.startswith(":"):
                continue
            elif line.startswith("event:"):
                self._event = line[6:].strip()
            elif line.startswith("data:"):
                self._data.append(line[5:].lstrip())
        return messages

    def _dispatch(self) -> Optional[RelayMessage]:
        if not self._data:
            self._event = None
            return None
        raw = "\n".join(self._data)
        name = self._event or "message"
        self._event, self._data = None, []
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug(f"Relay event '{name}' carried non-JSON data")
            payload = raw
        return RelayMessage(event=name, data=payload)


async def parse_relay_stream(byte_iter: AsyncIterator[bytes]) -> AsyncIterator[RelayMessage]:
    """Yield relay messages from a byte stream as each event completes."""
    parser = RelayStreamParser()
    async for chunk in byte_iter:
        for message in parser.feed(chunk):
            yield message
    for message in parser.flush():
        yield message
