"""Web search plugin backed by DuckDuckGo (Instant Answer API + HTML lite fallback)"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse, parse_qs, unquote, urljoin

import httpx

from ..domain.models.tool import Source, ToolCall, ToolResult, ToolSchema, ToolExecutionContext

TOOL_NAME = "web_search"

TOOL_SCHEMA = ToolSchema(
    name=TOOL_NAME,
    description=(
        "Search the web for current, factual information. Use when the user needs "
        "up-to-date facts, official procedures, phone numbers, addresses or costs. "
        "Provide a focused query (keywords or a quoted phrase). Returns a short answer "
        "when available plus the top results (title, URL, snippet)."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "minLength": 1,
                "description": "Focused search query (keywords or quoted phrase).",
            },
            "max_results": {
                "type": "integer",
                "minimum": 1,
                "maximum": 5,
                "description": "How many results to return (1-5).",
            },
        },
        "required": ["query"],
        "additionalProperties": False,
    },
)

INSTANT_ANSWER_URL = "https://api.duckduckgo.com/"
FALLBACK_URLS = (
    "https://duckduckgo.com/lite/",
    "https://html.duckduckgo.com/html/",
)

_ANCHOR_RE = re.compile(r'<a[^>]+href="([^"]+)"[^>]*>(.*?)</a>', re.I | re.S)
_TAG_RE = re.compile(r"<[^>]+>")


class SearchError(Exception):
    """Raised when every search endpoint failed."""


@dataclass
class SearchHit:
    title: str
    url: str
    snippet: str = ""


@dataclass
class SearchOutcome:
    """Normalized search response: an optional short answer plus hits."""
    answer: str = ""
    results: List[SearchHit] = field(default_factory=list)

    @property
    def sources(self) -> List[Source]:
        return [Source(title=r.title, url=r.url) for r in self.results]


def _strip_tags(text: str) -> str:
    return _TAG_RE.sub("", text or "").strip()


def _flatten_topics(items: Any) -> List[SearchHit]:
    out: List[SearchHit] = []
    for it in items or []:
        if isinstance(it, dict) and it.get("FirstURL"):
            text = it.get("Text") or ""
            out.append(SearchHit(title=text.split(" - ")[0][:120] or "(no title)", url=it["FirstURL"], snippet=text))
        elif isinstance(it, dict) and "Topics" in it:
            out.extend(_flatten_topics(it.get("Topics")))
    return out


def parse_instant_answer(data: Dict[str, Any], max_results: int) -> SearchOutcome:
    """Normalize an Instant Answer API payload."""
    answer = (data.get("Answer") or data.get("AbstractText") or data.get("Abstract") or "").strip()
    hits: List[SearchHit] = []
    abstract_url = (data.get("AbstractURL") or "").strip()
    abstract = (data.get("AbstractText") or "").strip()
    if abstract and abstract_url:
        hits.append(SearchHit(title=data.get("Heading") or "Instant Answer", url=abstract_url, snippet=abstract))
    hits.extend(_flatten_topics(data.get("Results")))
    hits.extend(_flatten_topics(data.get("RelatedTopics")))
    return SearchOutcome(answer=_strip_tags(answer), results=_dedupe(hits, max_results))


def parse_html_results(html: str, base_url: str, max_results: int) -> List[SearchHit]:
    """Extract result links from a DuckDuckGo HTML page, decoding redirect links."""
    hits: List[SearchHit] = []
    for href, text in _ANCHOR_RE.findall(html or ""):
        absolute = href if href.lower().startswith("http") else urljoin(base_url, href)
        try:
            parsed = urlparse(absolute)
        except ValueError:
            continue
        netloc = parsed.netloc or ""

        resolved: Optional[str] = None
        if netloc.endswith("duckduckgo.com") and parsed.path.startswith("/l/"):
            uddg = parse_qs(parsed.query).get("uddg", [None])[0]
            if uddg:
                resolved = unquote(uddg)
        elif netloc.endswith("duckduckgo.com") or netloc.endswith("duck.com"):
            continue
        elif absolute.lower().startswith("http"):
            resolved = absolute

        if not resolved:
            continue
        label = _strip_tags(text)
        hits.append(SearchHit(title=label[:120] or "(no title)", url=resolved, snippet=label[:180]))
    return _dedupe(hits, max_results)


def _dedupe(hits: List[SearchHit], max_results: int) -> List[SearchHit]:
    seen = set()
    unique: List[SearchHit] = []
    for hit in hits:
        if hit.url and hit.url not in seen:
            seen.add(hit.url)
            unique.append(hit)
        if len(unique) >= max_results:
            break
    return unique


def format_outcome(query: str, outcome: SearchOutcome) -> str:
    """Render a search outcome as tool-result text for the model."""
    if not outcome.answer and not outcome.results:
        return f"No results for '{query}'"
    lines: List[str] = []
    if outcome.answer:
        lines.append(f"Answer: {outcome.answer}")
    if outcome.results:
        lines.append(f"Top {len(outcome.results)} results for '{query}':")
        for i, r in enumerate(outcome.results, 1):
            lines.append(f"{i}. {r.title} - {r.url}")
            if r.snippet and r.snippet != r.title:
                lines.append(f"   {r.snippet}")
    return "\n".join(lines)


class WebSearchClient:
    """Keyless DuckDuckGo search over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        user_agent: str = "gather-stream/1.0",
        timeout_s: float = 8.0,
        logger: Optional[logging.Logger] = None,
    ):
        self._http = http_client or httpx.AsyncClient()
        self._owns_client = http_client is None
        self._user_agent = user_agent
        self._timeout = httpx.Timeout(timeout_s)
        self._logger = logger or logging.getLogger(__name__)

    async def search(self, query: str, max_results: int = 3) -> SearchOutcome:
        """Run one search; raises ``SearchError`` if no endpoint answered."""
        query = (query or "").strip()
        if not query:
            raise SearchError("query must be provided")
        max_results = max(1, min(int(max_results), 5))

        problems: List[str] = []
        try:
            outcome = await self._instant_answer(query, max_results)
            if outcome.results:
                return outcome
        except (httpx.HTTPError, ValueError) as e:
            problems.append(f"instant answer: {e}")
            outcome = SearchOutcome()

        for base in FALLBACK_URLS:
            try:
                hits = await self._html_results(base, query, max_results)
            except httpx.HTTPError as e:
                problems.append(f"{base}: {e}")
                continue
            if hits:
                return SearchOutcome(answer=outcome.answer, results=hits)

        if problems and not outcome.answer:
            raise SearchError("; ".join(problems))
        return outcome

    async def _instant_answer(self, query: str, max_results: int) -> SearchOutcome:
        params = {
            "q": query,
            "format": "json",
            "no_html": "1",
            "no_redirect": "1",
            "t": "gather-stream",
        }
        headers = {"User-Agent": self._user_agent, "Accept": "application/json"}
        resp = await self._http.get(INSTANT_ANSWER_URL, params=params, headers=headers, timeout=self._timeout)
        resp.raise_for_status()
        try:
            data = resp.json()
        except json.JSONDecodeError as e:
            raise ValueError("invalid JSON response") from e
        if not isinstance(data, dict):
            raise ValueError("unexpected response shape")
        return parse_instant_answer(data, max_results)

    async def _html_results(self, base: str, query: str, max_results: int) -> List[SearchHit]:
        headers = {
            "User-Agent": self._user_agent,
            "Accept": "text/html",
            "Accept-Language": "en-US,en;q=0.9",
            "Referer": "https://duckduckgo.com/",
        }
        resp = await self._http.get(base, params={"q": query}, headers=headers, timeout=self._timeout)
        resp.raise_for_status()
        return parse_html_results(resp.text, base, max_results)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


class WebSearchTool:
    """``web_search`` tool plugin: text for the model plus citation sources."""

    def __init__(
        self,
        client: WebSearchClient,
        default_max_results: int = 3,
        enabled: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        self._client = client
        self._default_max_results = default_max_results
        self._enabled = enabled
        self._logger = logger or logging.getLogger(__name__)

    def get_schema(self) -> ToolSchema:
        return TOOL_SCHEMA

    def is_available(self) -> bool:
        return self._enabled

    async def execute(self, tool_call: ToolCall, context: ToolExecutionContext) -> ToolResult:
        query = str(tool_call.input.get("query", ""))
        max_results = tool_call.input.get("max_results", self._default_max_results)
        self._logger.info(f"[{context.request_id}] web_search: {query!r}")
        outcome = await self._client.search(query, max_results)
        return ToolResult(
            tool_call_id=tool_call.id,
            text=format_outcome(query, outcome),
            sources=outcome.sources,
            success=True,
        )


TOOL_IMPLEMENTATION = WebSearchTool
TOOL_AUTHOR = "core"
TOOL_VERSION = "1.0.0"
