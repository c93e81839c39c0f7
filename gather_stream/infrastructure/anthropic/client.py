"""
Anthropic client adapter - Infrastructure implementation of the LLM client protocol.
Streams the Messages API over a shared ``httpx.AsyncClient``.
"""

from __future__ import annotations
import contextlib
import logging
from typing import AsyncIterator, List, Dict, Any, Optional

import httpx

from ...domain.models.tool import ToolSchema
from ...domain.interfaces.llm_client import LLMClient
from ...utils import UpstreamAPIError, truncate_text


class AnthropicAdapter(LLMClient):
    """Adapter for the Anthropic Messages streaming endpoint.

    One call to ``stream_messages`` is one upstream attempt; there is no
    retry. The HTTP client is shared and owned by the caller unless the
    adapter created it.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        api_url: str = "https://api.anthropic.com/v1/messages",
        max_tokens: int = 512,
        api_version: str = "2023-06-01",
        connect_timeout_s: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        self._api_key = api_key
        self._model = model
        self._api_url = api_url
        self._max_tokens = max_tokens
        self._api_version = api_version
        self._logger = logger or logging.getLogger(__name__)
        self._owns_client = http_client is None
        # Reads are bounded by the request deadline, not a per-read timeout
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=connect_timeout_s)
        )
        self._logger.info(f"Anthropic adapter initialized - Model: {model}")

    def build_payload(
        self,
        messages: List[Dict[str, Any]],
        system: Optional[str] = None,
        tools: Optional[List[ToolSchema]] = None,
    ) -> Dict[str, Any]:
        """Request body for one streaming call."""
        payload: Dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": messages,
            "stream": True,
        }
        if system:
            payload["system"] = system
        if tools:
            payload["tools"] = [t if isinstance(t, dict) else t.to_api_format() for t in tools]
        return payload

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": self._api_version,
            "content-type": "application/json",
            "accept": "text/event-stream",
        }

    @contextlib.asynccontextmanager
    async def stream_messages(
        self,
        messages: List[Dict[str, Any]],
        system: Optional[str] = None,
        tools: Optional[List[ToolSchema]] = None,
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open a streaming call and yield its raw byte iterator.

        Non-2xx responses and transport failures raise ``UpstreamAPIError``.
        The response is closed when the context exits, including on
        cancellation.
        """
        payload = self.build_payload(messages, system=system, tools=tools)
        self._logger.debug(f"Opening upstream stream: {len(messages)} message(s), {len(payload.get('tools', []))} tool(s)")
        try:
            async with self._http.stream("POST", self._api_url, json=payload, headers=self._headers()) as response:
                if response.status_code // 100 != 2:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    excerpt = truncate_text(body, 300)
                    raise UpstreamAPIError(
                        f"Upstream returned HTTP {response.status_code}",
                        status_code=response.status_code,
                        body_excerpt=excerpt,
                    )
                yield _iter_bytes(response)
        except httpx.HTTPError as e:
            raise UpstreamAPIError(f"Upstream transport error: {type(e).__name__}: {e}") from e

    def get_model_info(self) -> Dict[str, Any]:
        """Get information about the current model."""
        return {
            "provider": "anthropic",
            "model": self._model,
            "max_tokens": self._max_tokens,
            "api_version": self._api_version,
        }

    async def aclose(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            await self._http.aclose()


async def _iter_bytes(response: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    except httpx.HTTPError as e:
        raise UpstreamAPIError(f"Upstream stream interrupted: {type(e).__name__}: {e}") from e
