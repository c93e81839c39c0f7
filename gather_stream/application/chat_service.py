"""
Chat service - Application service orchestrating complete chat interactions.
Builds the request-scoped history and runs one agent loop per request.
"""

from __future__ import annotations
import contextlib
import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from ..domain.interfaces.llm_client import LLMClient
from ..domain.interfaces.tool_plugin import ToolRegistry
from ..domain.models.conversation import ConversationHistory, ConversationTurn
from ..domain.models.events import ReplyDone, ReplyError, ReplyEvent
from ..domain.services.agent_loop import AgentLoopController
from ..domain.services.source_ranker import DEFAULT_POLICY, RankingPolicy
from ..domain.services.tool_orchestrator import ToolOrchestrator
from ..infrastructure.anthropic.client import AnthropicAdapter
from ..infrastructure.config.settings import AgentSettings, AppSettings
from ..infrastructure.tools.registry import DefaultToolRegistry
from ..plugins.web_search import WebSearchClient, WebSearchTool
from ..prompt_manager import PromptManager

ChatContext = Union[str, Dict[str, Any], List[Any], None]


class ChatService:
    """Application service orchestrating complete chat interactions."""

    def __init__(
        self,
        llm_client: LLMClient,
        tool_registry: ToolRegistry,
        prompt_manager: Optional[PromptManager] = None,
        agent_settings: Optional[AgentSettings] = None,
        ranking_policy: RankingPolicy = DEFAULT_POLICY,
        configured: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        self._llm_client = llm_client
        self._orchestrator = ToolOrchestrator(tool_registry, logger=logger)
        self._prompts = prompt_manager or PromptManager()
        self._agent = agent_settings or AgentSettings()
        self._policy = ranking_policy
        self._configured = configured
        self._logger = logger or logging.getLogger(__name__)
        self._closers: List[Any] = []

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None
    ) -> ChatService:
        """Wire the provider adapter, search tool and ranking policy from settings."""
        http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=settings.provider.connect_timeout_s)
        )
        adapter = AnthropicAdapter(
            api_key=settings.provider.api_key or "",
            model=settings.provider.model,
            api_url=settings.provider.api_url,
            max_tokens=settings.provider.max_tokens,
            api_version=settings.provider.version,
            http_client=http,
            logger=logger,
        )
        registry = DefaultToolRegistry(logger=logger)
        if settings.search.enabled:
            search_client = WebSearchClient(
                http_client=http,
                user_agent=settings.search.user_agent,
                timeout_s=settings.search.timeout_s,
                logger=logger,
            )
            registry.register_tool(WebSearchTool(
                search_client,
                default_max_results=settings.search.max_results,
                logger=logger,
            ))
        policy = RankingPolicy.from_lists(
            allow=settings.search.allow_domains,
            deny=settings.search.deny_domains,
        )
        service = cls(
            llm_client=adapter,
            tool_registry=registry,
            prompt_manager=PromptManager(search_enabled=settings.search.enabled),
            agent_settings=settings.agent,
            ranking_policy=policy,
            configured=not settings.validate_required_settings(),
            logger=logger,
        )
        if http_client is None:
            service._closers.append(http)
        return service

    @property
    def configured(self) -> bool:
        """Whether the upstream provider credentials are present."""
        return self._configured

    def build_history(
        self,
        message: str,
        context: ChatContext = None,
        history: Optional[List[Dict[str, Any]]] = None
    ) -> ConversationHistory:
        """Prior turns followed by the wrapped question as the final user turn."""
        conversation = ConversationHistory(system_prompt=self._prompts.chat_system_prompt())
        for entry in history or []:
            conversation.append(ConversationTurn.from_dict(entry))
        conversation.add_user_message(self._prompts.user_content(message, context))
        return conversation

    def new_controller(self, request_id: Optional[str] = None) -> AgentLoopController:
        return AgentLoopController(
            client=self._llm_client,
            orchestrator=self._orchestrator,
            system_prompt=self._prompts.chat_system_prompt(),
            max_tool_rounds=self._agent.max_tool_rounds,
            request_timeout_s=self._agent.request_timeout_s,
            source_limit=self._agent.source_limit,
            ranking_policy=self._policy,
            request_id=request_id,
            logger=self._logger,
        )

    async def chat_stream(
        self,
        message: str,
        context: ChatContext = None,
        history: Optional[List[Dict[str, Any]]] = None,
        request_id: Optional[str] = None
    ) -> AsyncIterator[ReplyEvent]:
        """Stream reply events for one request; closing the iterator cancels it."""
        request_id = request_id or uuid.uuid4().hex[:12]
        conversation = self.build_history(message, context, history)
        controller = self.new_controller(request_id)
        self._logger.info(f"[{request_id}] Chat request: {len(conversation)} turn(s)")
        try:
            async with contextlib.aclosing(controller.run(conversation)) as events:
                async for event in events:
                    yield event
        finally:
            self._logger.info(f"[{request_id}] Chat finished in state {controller.state.value}")

    async def chat(
        self,
        message: str,
        context: ChatContext = None,
        history: Optional[List[Dict[str, Any]]] = None,
        request_id: Optional[str] = None
    ) -> Union[ReplyDone, ReplyError]:
        """Run a request to completion and return its terminal event."""
        async with contextlib.aclosing(self.chat_stream(message, context, history, request_id)) as events:
            async for event in events:
                if isinstance(event, (ReplyDone, ReplyError)):
                    return event
        return ReplyError(message="Failed to process chat request")

    async def aclose(self) -> None:
        """Release HTTP resources created by ``from_settings``."""
        for closer in self._closers:
            await closer.aclose()
        self._closers.clear()
