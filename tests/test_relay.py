import asyncio
import json

from gather_stream.api.relay import (
    RelayStreamParser,
    encode_event,
    format_sse,
    parse_relay_stream,
    relay_events,
)
from gather_stream.domain.models.events import ReplyDone, ReplyError, ReplySources, ReplyToken
from gather_stream.domain.models.tool import Source

from .fakes import collect


def test_event_framing():
    assert format_sse("token", {"text": "hi"}) == 'event: token\ndata: {"text": "hi"}\n\n'
    done = ReplyDone(response="ok", sources=[Source(title="IRS", url="https://irs.gov")], actions=[])
    frame = encode_event(done)
    assert frame.startswith("event: done\ndata: ")
    payload = json.loads(frame.split("data: ", 1)[1])
    assert payload == {"response": "ok", "sources": [{"title": "IRS", "url": "https://irs.gov"}], "actions": []}
    assert encode_event(ReplyError(message="nope", code="timeout")) == 'event: error\ndata: {"message": "nope"}\n\n'


def test_non_ascii_is_sent_verbatim():
    assert "café" in encode_event(ReplyToken(text="café"))


def test_relay_stops_after_terminal_event():
    closed = []

    async def events():
        try:
            yield ReplyToken(text="a")
            yield ReplyDone(response="a", sources=[], actions=[])
            yield ReplyToken(text="never")
        finally:
            closed.append(True)

    frames = asyncio.run(collect(relay_events(events())))
    assert [f.split("\n", 1)[0] for f in frames] == ["event: token", "event: done"]
    assert closed == [True]


def test_relay_adds_error_when_source_ends_silently():
    async def events():
        yield ReplyToken(text="a")

    frames = asyncio.run(collect(relay_events(events())))
    assert frames[-1].startswith("event: error\n")


def test_parser_reassembles_split_frames():
    wire = "".join(encode_event(e) for e in [
        ReplyToken(text="Hel"),
        ReplyToken(text="lo ☕"),
        ReplySources(sources=[Source(title="t", url="https://a.gov")]),
        ReplyDone(response="Hello ☕", sources=[], actions=[]),
    ]).encode("utf-8")
    parser = RelayStreamParser()
    messages = []
    for i in range(0, len(wire), 3):
        messages.extend(parser.feed(wire[i:i + 3]))
    messages.extend(parser.flush())
    assert [m.event for m in messages] == ["token", "token", "sources", "done"]
    assert "".join(m.data["text"] for m in messages if m.event == "token") == "Hello ☕"
    assert messages[-1].terminal and not messages[0].terminal


def test_parser_comments_unterminated_tail_and_raw_data():
    parser = RelayStreamParser()
    messages = parser.feed(b": ping\n\nevent: note\ndata: plain text\n\nevent: done\ndata: {\"response\": \"x\"}")
    messages += parser.flush()
    assert [(m.event, m.data) for m in messages] == [("note", "plain text"), ("done", {"response": "x"})]


def test_parse_relay_stream_async():
    async def source():
        yield encode_event(ReplyToken(text="x")).encode()
        yield encode_event(ReplyError(message="boom")).encode()

    messages = asyncio.run(collect(parse_relay_stream(source())))
    assert [m.event for m in messages] == ["token", "error"]
    assert messages[1].data == {"message": "boom"}
