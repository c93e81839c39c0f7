#!/usr/bin/env python3
"""
Command line entry point for Gather Stream.

    gather-stream serve                 # run the HTTP API under uvicorn
    gather-stream ask "question"        # one request, in-process
    gather-stream ask "question" --server http://localhost:8000
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from typing import Any, Optional

import httpx
from dotenv import load_dotenv

from . import __version__
from .api.relay import parse_relay_stream
from .domain.models.events import ReplyDone, ReplyError, ReplySources, ReplyToken
from .domain.services.response_parser import parse_partial
from .utils import setup_logging


class LivePreview:
    """Renders the reply message as it grows, from the raw token stream."""

    def __init__(self, out=None, enabled: bool = True):
        self._out = out or sys.stdout
        self._enabled = enabled
        self._raw = ""
        self._shown = ""

    def add(self, text: str) -> None:
        self._raw += text
        if not self._enabled:
            return
        message = parse_partial(self._raw) or ""
        if message.startswith("{"):
            # JSON reply whose message value has not started yet
            return
        # Partial parses only grow; print the new suffix
        if message.startswith(self._shown) and len(message) > len(self._shown):
            self._out.write(message[len(self._shown):])
            self._out.flush()
            self._shown = message

    def finish(self, final_message: str) -> None:
        if not self._enabled:
            self._out.write(final_message + "\n")
        elif final_message.startswith(self._shown):
            self._out.write(final_message[len(self._shown):] + "\n")
        else:
            # The reduced message differs from the preview (e.g. fallback text)
            self._out.write("\n" + final_message + "\n")
        self._out.flush()


def _print_sources(sources: Any) -> None:
    for i, source in enumerate(sources or [], 1):
        print(f"  [{i}] {source.get('title', '')} - {source.get('url', '')}")


def _print_actions(actions: Any) -> None:
    for action in actions or []:
        print(f"  -> {action.get('label', '')} ({action.get('type', '')})")


def _parse_context(raw: Optional[str]) -> Any:
    """Context flag: JSON object/array when it parses as one, plain text otherwise."""
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    return value if isinstance(value, (dict, list)) else raw


async def ask_local(message: str, context: Any, preview: LivePreview) -> int:
    """Run one chat request in-process and render it."""
    from .application.chat_service import ChatService
    from .infrastructure.config.settings import get_settings

    settings = get_settings()
    missing = settings.validate_required_settings()
    if missing:
        print(f"❌ Error: missing settings: {', '.join(missing)}", file=sys.stderr)
        return 1

    service = ChatService.from_settings(settings)
    try:
        async with contextlib.aclosing(service.chat_stream(message, context)) as events:
            async for event in events:
                if isinstance(event, ReplyToken):
                    preview.add(event.text)
                elif isinstance(event, ReplySources):
                    continue
                elif isinstance(event, ReplyDone):
                    preview.finish(event.response)
                    _print_sources([s.to_dict() for s in event.sources])
                    _print_actions(event.actions)
                    return 0
                elif isinstance(event, ReplyError):
                    print(f"\n❌ Error ({event.code}): {event.message}", file=sys.stderr)
                    return 1
    finally:
        await service.aclose()
    return 1


async def ask_remote(
    server: str,
    message: str,
    context: Any,
    preview: LivePreview,
    api_key: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """Stream one chat request from a running server and render it."""
    url = server.rstrip("/") + "/v1/chat"
    headers = {"Accept": "text/event-stream"}
    if api_key:
        headers["X-API-Key"] = api_key
    body = {"message": message, "context": context, "stream": True}

    async with httpx.AsyncClient(timeout=httpx.Timeout(None, connect=5.0), transport=transport) as http:
        async with http.stream("POST", url, json=body, headers=headers) as resp:
            if resp.status_code != 200:
                detail = (await resp.aread()).decode("utf-8", errors="replace")
                print(f"❌ Error: HTTP {resp.status_code}: {detail[:200]}", file=sys.stderr)
                return 1
            async with contextlib.aclosing(parse_relay_stream(resp.aiter_bytes())) as messages:
                async for msg in messages:
                    if msg.event == "token":
                        preview.add(msg.data.get("text", ""))
                    elif msg.event == "done":
                        preview.finish(msg.data.get("response", ""))
                        _print_sources(msg.data.get("sources"))
                        _print_actions(msg.data.get("actions"))
                        return 0
                    elif msg.event == "error":
                        error = msg.data.get("message") if isinstance(msg.data, dict) else msg.data
                        print(f"\n❌ Error: {error}", file=sys.stderr)
                        return 1
    print("\n❌ Error: stream closed without a reply", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gather-stream",
        description="Streaming chat orchestration with web search tool calls",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve --port 8000
  %(prog)s ask "When does the DMV open?"
  %(prog)s ask "Is this step done?" --context '{"task":"Renew license"}'
  %(prog)s ask "Passport fee?" --server http://localhost:8000
        """
    )
    parser.add_argument('--log-level',
                        default=os.getenv('LOG_LEVEL', 'INFO'),
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Set logging level')
    parser.add_argument('--version',
                        action='version',
                        version=f'%(prog)s {__version__}')

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument('--host', default=os.getenv('HOST', '127.0.0.1'))
    serve.add_argument('--port', type=int, default=int(os.getenv('PORT', '8000')))
    serve.add_argument('--reload', action='store_true', help='Auto-reload on code changes')

    ask = sub.add_parser("ask", help="Ask one question and stream the reply")
    ask.add_argument('message', help='Question to ask')
    ask.add_argument('--context', help='Task context (JSON object/array or plain text)')
    ask.add_argument('--server', help='Base URL of a running server; default runs in-process')
    ask.add_argument('--api-key',
                     default=os.getenv('API_KEY'),
                     help='X-API-Key for --server (or set API_KEY env var)')
    ask.add_argument('--no-preview', action='store_true', help='Print only the final reply')
    return parser


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the gather-stream CLI."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    if args.command == "serve":
        import uvicorn

        logger.info(f"Starting API on {args.host}:{args.port}")
        uvicorn.run(
            "gather_stream.api.app:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level=args.log_level.lower(),
        )
        return 0

    preview = LivePreview(enabled=not args.no_preview)
    context = _parse_context(args.context)
    try:
        if args.server:
            return asyncio.run(ask_remote(args.server, args.message, context, preview, api_key=args.api_key))
        return asyncio.run(ask_local(args.message, context, preview))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        return 130
    except httpx.HTTPError as e:
        logger.error(f"Request failed: {e}")
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
