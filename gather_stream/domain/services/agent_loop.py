"""
Agent loop controller - drives one chat request through the streaming
tool-use state machine.

    STREAMING -> EXECUTING_TOOLS -> CONTINUING -> STREAMING -> ... -> REDUCING -> DONE

``ERROR`` is reachable from every state. One controller instance serves
exactly one request; all per-request buffers live on the instance.
"""

from __future__ import annotations
import asyncio
import contextlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, TypeVar

from ..interfaces.llm_client import LLMClient
from ..models.conversation import ConversationHistory, LoopState
from ..models.events import (
    ReplyDone,
    ReplyError,
    ReplyEvent,
    ReplySources,
    ReplyToken,
    MessageStop,
    SearchResultsFound,
    StreamError,
    StreamEvent,
    TokenDelta,
    ToolInputDelta,
    ToolUseStart,
    ToolUseStop,
)
from ..models.tool import PendingToolCall, Source, ToolCall, ToolExecutionContext, ToolResult
from .schema_validator import reduce_chat_text
from .source_ranker import DEFAULT_POLICY, RankingPolicy, rank_sources
from .stream_decoder import decode_stream
from .tool_orchestrator import ToolOrchestrator
from ...utils import RequestTimeoutError, ToolLoopLimitError, UpstreamAPIError, truncate_text

T = TypeVar("T")

TOOL_USE_STOP_REASON = "tool_use"

EMPTY_REPLY_MESSAGE = "Sorry, I couldn't generate a response."
UPSTREAM_ERROR_MESSAGE = "The AI service is unavailable right now. Please try again."
TIMEOUT_ERROR_MESSAGE = "The request took too long. Please try again."
TOOL_LIMIT_ERROR_MESSAGE = "This needed too many searches to answer. Try a more specific question."
INTERNAL_ERROR_MESSAGE = "Failed to process chat request"


@dataclass
class _TurnState:
    """Per-turn tool tracking; reset before every upstream call."""
    text: str = ""
    pending: Dict[str, PendingToolCall] = field(default_factory=dict)
    calls: List[ToolCall] = field(default_factory=list)
    stop_reason: Optional[str] = None


class AgentLoopController:
    """Runs the streaming agentic loop for a single request."""

    def __init__(
        self,
        client: LLMClient,
        orchestrator: ToolOrchestrator,
        system_prompt: Optional[str] = None,
        max_tool_rounds: int = 5,
        request_timeout_s: float = 30.0,
        source_limit: int = 3,
        ranking_policy: RankingPolicy = DEFAULT_POLICY,
        request_id: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._orchestrator = orchestrator
        self._system_prompt = system_prompt
        self._max_tool_rounds = max_tool_rounds
        self._timeout_s = request_timeout_s
        self._source_limit = source_limit
        self._policy = ranking_policy
        self._request_id = request_id or uuid.uuid4().hex[:12]
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock

        self._state = LoopState.STREAMING
        self._text_buffer = ""
        self._sources: List[Source] = []
        self._results: List[ToolResult] = []
        self._rounds = 0
        self._deadline = 0.0
        self._started = False

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def tool_rounds(self) -> int:
        return self._rounds

    @property
    def accumulated_text(self) -> str:
        """Text streamed across all turns of this request."""
        return self._text_buffer

    async def run(self, history: ConversationHistory) -> AsyncIterator[ReplyEvent]:
        """Drive the loop, yielding reply events until a terminal one.

        Exactly one terminal event (``ReplyDone`` or ``ReplyError``) ends the
        stream. Failures are reported as ``ReplyError``; only cancellation
        propagates.
        """
        if self._started:
            raise RuntimeError("AgentLoopController instances serve a single request")
        self._started = True
        self._deadline = self._clock() + self._timeout_s
        context = ToolExecutionContext(
            request_id=self._request_id,
            max_rounds=self._max_tool_rounds,
            timeout_s=self._timeout_s,
        )

        try:
            while True:
                self._state = LoopState.STREAMING
                turn = _TurnState()
                async with contextlib.aclosing(self._stream_turn(history, turn)) as tokens:
                    async for token in tokens:
                        yield token

                if turn.pending:
                    self._logger.warning(
                        f"[{self._request_id}] Discarding {len(turn.pending)} unfinished tool call(s) at turn end"
                    )
                    turn.pending.clear()

                if turn.stop_reason != TOOL_USE_STOP_REASON or not turn.calls:
                    break

                if not context.can_start_round():
                    raise ToolLoopLimitError(self._max_tool_rounds)

                self._state = LoopState.EXECUTING_TOOLS
                results = await self._execute_tools(turn.calls, context)

                self._state = LoopState.CONTINUING
                history.add_tool_round(turn.text, turn.calls, results)
                context.next_round()
                self._rounds = context.current_round

            self._state = LoopState.REDUCING
            final_events = self._reduce()
            self._state = LoopState.DONE
            for event in final_events:
                yield event

        except RequestTimeoutError as e:
            self._state = LoopState.ERROR
            self._logger.warning(f"[{self._request_id}] {e}")
            yield ReplyError(message=TIMEOUT_ERROR_MESSAGE, code="timeout")
        except ToolLoopLimitError as e:
            self._state = LoopState.ERROR
            self._logger.warning(f"[{self._request_id}] {e}")
            yield ReplyError(message=TOOL_LIMIT_ERROR_MESSAGE, code="tool_loop_limit")
        except UpstreamAPIError as e:
            self._state = LoopState.ERROR
            detail = f" (status {e.status_code})" if e.status_code else ""
            self._logger.error(f"[{self._request_id}] Upstream error{detail}: {e}")
            yield ReplyError(message=UPSTREAM_ERROR_MESSAGE, code="upstream")
        except Exception as e:
            self._state = LoopState.ERROR
            self._logger.exception(f"[{self._request_id}] Chat loop failed: {e}")
            yield ReplyError(message=INTERNAL_ERROR_MESSAGE, code="internal")

    async def _stream_turn(self, history: ConversationHistory, turn: _TurnState) -> AsyncIterator[ReplyToken]:
        """Run one upstream call, yielding tokens before the next read."""
        if not history.ready_for_model():
            raise ValueError("history must end with a user turn before requesting the model")

        async with contextlib.AsyncExitStack() as stack:
            byte_iter = await self._bounded(stack.enter_async_context(
                self._client.stream_messages(
                    history.get_messages_for_api(),
                    system=self._system_prompt,
                    tools=self._orchestrator.prepare_tools(),
                )
            ))
            events = await stack.enter_async_context(
                contextlib.aclosing(decode_stream(byte_iter, logger=self._logger))
            )
            while True:
                try:
                    event = await self._bounded(anext(events))
                except StopAsyncIteration:
                    self._logger.debug(f"[{self._request_id}] Stream ended without message_stop")
                    return
                if isinstance(event, TokenDelta):
                    turn.text += event.text
                    self._text_buffer += event.text
                    yield ReplyToken(text=event.text)
                elif isinstance(event, MessageStop):
                    turn.stop_reason = event.stop_reason
                    return
                else:
                    self._handle_event(event, turn)

    def _handle_event(self, event: StreamEvent, turn: _TurnState) -> None:
        if isinstance(event, ToolUseStart):
            if not event.id:
                self._logger.debug(f"[{self._request_id}] Ignoring tool_use block without id")
                return
            turn.pending[event.id] = PendingToolCall(id=event.id, name=event.name)
        elif isinstance(event, ToolInputDelta):
            pending = turn.pending.get(event.id)
            if pending is None:
                self._logger.debug(f"[{self._request_id}] Dropping input delta for unknown tool id '{event.id}'")
                return
            pending.append(event.partial_json)
        elif isinstance(event, ToolUseStop):
            pending = turn.pending.pop(event.id, None)
            if pending is None:
                self._logger.debug(f"[{self._request_id}] Ignoring stop for unknown tool id '{event.id}'")
                return
            call = pending.complete()
            if call is None:
                self._logger.warning(
                    f"[{self._request_id}] Discarding tool call {pending.name}: "
                    f"invalid input {truncate_text(pending.input_buffer, 80)!r}"
                )
                return
            turn.calls.append(call)
        elif isinstance(event, SearchResultsFound):
            self._sources.extend(event.sources)
        elif isinstance(event, StreamError):
            raise UpstreamAPIError(event.message)

    async def _execute_tools(self, calls: List[ToolCall], context: ToolExecutionContext) -> List[ToolResult]:
        """Execute the round's calls in order, bounded by the remaining deadline."""
        results = await self._bounded(self._orchestrator.execute_tool_calls(calls, context))
        for result in results:
            self._sources.extend(result.sources)
        self._results.extend(results)
        self._logger.debug(
            f"[{self._request_id}] Tool summary: "
            f"{self._orchestrator.create_tool_execution_summary(self._results, context.current_round + 1)}"
        )
        return results

    def _reduce(self) -> List[ReplyEvent]:
        parsed = reduce_chat_text(self._text_buffer, logger=self._logger)
        message = parsed.message or EMPTY_REPLY_MESSAGE
        ranked = rank_sources(self._sources, limit=self._source_limit, policy=self._policy)
        self._logger.debug(
            f"[{self._request_id}] Reduced reply via {parsed.tier.value} parse; "
            f"{len(parsed.actions)} action(s), {len(ranked)} source(s)"
        )
        events: List[ReplyEvent] = []
        if ranked:
            events.append(ReplySources(sources=ranked))
        events.append(ReplyDone(response=message, sources=ranked, actions=parsed.actions))
        return events

    async def _bounded(self, aw: Awaitable[T]) -> T:
        """Await ``aw`` within the time left before the request deadline."""
        remaining = self._deadline - self._clock()
        if remaining <= 0:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise RequestTimeoutError(self._timeout_s)
        try:
            return await asyncio.wait_for(aw, timeout=remaining)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(self._timeout_s) from None
