import asyncio

import httpx
import pytest

from gather_stream.domain.models.tool import ToolCall, ToolExecutionContext
from gather_stream.plugins.web_search import (
    SearchError,
    SearchHit,
    SearchOutcome,
    WebSearchClient,
    WebSearchTool,
    format_outcome,
    parse_html_results,
    parse_instant_answer,
)

INSTANT = {
    "Heading": "Passport",
    "AbstractText": "A passport is a travel document.",
    "AbstractURL": "https://travel.state.gov/passport",
    "RelatedTopics": [
        {"FirstURL": "https://duckduckgo.com/Passport_fee", "Text": "Passport fee - costs of a passport"},
        {"Name": "Group", "Topics": [{"FirstURL": "https://duckduckgo.com/Visa", "Text": "Visa - permission"}]},
    ],
}

HTML = """
<a rel="nofollow" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.irs.gov%2Ffiling&rut=x">IRS <b>Filing</b></a>
<a href="https://duckduckgo.com/settings">Settings</a>
<a href="https://www.ssa.gov/">Social Security</a>
<a href="https://www.ssa.gov/">Social Security again</a>
"""


def _client(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebSearchClient(http_client=http), http


def _search(handler, query="passport", max_results=3):
    client, http = _client(handler)

    async def go():
        try:
            return await client.search(query, max_results)
        finally:
            await http.aclose()
    return asyncio.run(go())


def test_parse_instant_answer_flattens_topics():
    outcome = parse_instant_answer(INSTANT, max_results=5)
    assert outcome.answer == "A passport is a travel document."
    assert [h.url for h in outcome.results] == [
        "https://travel.state.gov/passport",
        "https://duckduckgo.com/Passport_fee",
        "https://duckduckgo.com/Visa",
    ]
    assert outcome.results[1].title == "Passport fee"
    assert len(parse_instant_answer(INSTANT, max_results=1).results) == 1


def test_parse_html_results_decodes_redirects():
    hits = parse_html_results(HTML, "https://html.duckduckgo.com/html/", max_results=5)
    assert [h.url for h in hits] == ["https://www.irs.gov/filing", "https://www.ssa.gov/"]
    assert hits[0].title == "IRS Filing"


def test_format_outcome():
    assert format_outcome("zzz", SearchOutcome()) == "No results for 'zzz'"
    text = format_outcome("q", SearchOutcome(answer="42", results=[SearchHit("T", "https://a.gov", "snip")]))
    assert text.splitlines() == ["Answer: 42", "Top 1 results for 'q':", "1. T - https://a.gov", "   snip"]


def test_instant_answer_used_when_it_has_results():
    def handler(request):
        assert request.url.host == "api.duckduckgo.com"
        assert request.url.params["q"] == "passport"
        return httpx.Response(200, json=INSTANT)

    outcome = _search(handler)
    assert outcome.sources[0].url == "https://travel.state.gov/passport"


def test_falls_back_to_html_results():
    def handler(request):
        if request.url.host == "api.duckduckgo.com":
            return httpx.Response(200, json={"Answer": "", "RelatedTopics": []})
        if request.url.path.startswith("/lite"):
            return httpx.Response(503)
        return httpx.Response(200, text=HTML)

    outcome = _search(handler)
    assert [s.url for s in outcome.sources] == ["https://www.irs.gov/filing", "https://www.ssa.gov/"]


def test_all_endpoints_failing_raises():
    with pytest.raises(SearchError):
        _search(lambda request: httpx.Response(500))


def test_blank_query_raises():
    with pytest.raises(SearchError):
        _search(lambda request: httpx.Response(200, json=INSTANT), query="  ")


def test_tool_executes_with_default_max_results():
    seen = {}

    class _Client:
        async def search(self, query, max_results):
            seen["args"] = (query, max_results)
            return SearchOutcome(results=[SearchHit("USA.gov", "https://www.usa.gov/")])

    tool = WebSearchTool(_Client(), default_max_results=2)
    call = ToolCall(id="toolu_1", name="web_search", input={"query": "renew passport"})
    result = asyncio.run(tool.execute(call, ToolExecutionContext(request_id="r1")))
    assert seen["args"] == ("renew passport", 2)
    assert result.tool_call_id == "toolu_1"
    assert result.sources[0].url == "https://www.usa.gov/"
    assert "1. USA.gov - https://www.usa.gov/" in result.text
    assert tool.get_schema().name == "web_search"
