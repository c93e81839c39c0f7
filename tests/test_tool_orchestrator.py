import asyncio

import pytest

from gather_stream.domain.models.tool import Source, ToolCall, ToolExecutionContext, ToolSchema
from gather_stream.domain.services.tool_orchestrator import FAILURE_PREFIX, ToolOrchestrator
from gather_stream.infrastructure.tools.registry import DefaultToolRegistry

from .fakes import FakeSearchTool


def _call(input_, name="web_search", id_="toolu_1"):
    return ToolCall(id=id_, name=name, input=input_)


def _run(orchestrator, call):
    return asyncio.run(orchestrator.execute_tool_call(call, ToolExecutionContext(request_id="t")))


def test_successful_call_carries_sources_and_timing():
    tool = FakeSearchTool(sources=[Source(title="IRS", url="https://www.irs.gov/")])
    orchestrator = ToolOrchestrator(DefaultToolRegistry([tool]))
    result = _run(orchestrator, _call({"query": "tax deadline"}))
    assert result.success
    assert result.tool_call_id == "toolu_1"
    assert result.sources == tool.sources
    assert result.execution_time_ms is not None
    assert tool.calls[0].input == {"query": "tax deadline"}


def test_tool_exception_becomes_failure_text():
    tool = FakeSearchTool(error=RuntimeError("connection reset"))
    orchestrator = ToolOrchestrator(DefaultToolRegistry([tool]))
    result = _run(orchestrator, _call({"query": "x"}))
    assert not result.success
    assert result.text == f"{FAILURE_PREFIX}: connection reset"
    assert result.sources == []
    block = result.to_content_block()
    assert block["is_error"] is True and block["tool_use_id"] == "toolu_1"


def test_unknown_and_unavailable_tools():
    orchestrator = ToolOrchestrator(DefaultToolRegistry([FakeSearchTool(available=False)]))
    unknown = _run(orchestrator, _call({}, name="calculator"))
    assert unknown.text == "search failed: tool 'calculator' not found"
    unavailable = _run(orchestrator, _call({"query": "x"}))
    assert unavailable.text == "search failed: tool 'web_search' not available"
    assert orchestrator.prepare_tools() == []


@pytest.mark.parametrize("bad_input", [
    {},
    {"query": ""},
    {"query": "x", "max_results": 9},
    {"query": "x", "unexpected": True},
])
def test_schema_violations_never_reach_the_tool(bad_input):
    tool = FakeSearchTool()
    orchestrator = ToolOrchestrator(DefaultToolRegistry([tool]))
    result = _run(orchestrator, _call(bad_input))
    assert not result.success
    assert result.text.startswith("search failed: invalid input")
    assert tool.calls == []


def test_register_rejects_invalid_schema():
    class _BrokenTool(FakeSearchTool):
        def get_schema(self):
            return ToolSchema(name="broken", description="", input_schema={"type": "not-a-type"})

    with pytest.raises(ValueError):
        DefaultToolRegistry([_BrokenTool()])


def test_calls_run_sequentially_in_order():
    order = []

    class _OrderedTool(FakeSearchTool):
        async def execute(self, tool_call, context):
            order.append(("start", tool_call.id))
            await asyncio.sleep(0.01)
            order.append(("end", tool_call.id))
            return await super().execute(tool_call, context)

    orchestrator = ToolOrchestrator(DefaultToolRegistry([_OrderedTool()]))
    calls = [_call({"query": "a"}, id_="t1"), _call({"query": "b"}, id_="t2")]
    results = asyncio.run(orchestrator.execute_tool_calls(calls, ToolExecutionContext()))
    assert [r.tool_call_id for r in results] == ["t1", "t2"]
    assert order == [("start", "t1"), ("end", "t1"), ("start", "t2"), ("end", "t2")]


def test_execution_summary():
    tool = FakeSearchTool(sources=[Source(title="a", url="https://a.gov")])
    orchestrator = ToolOrchestrator(DefaultToolRegistry([tool]))
    ok = _run(orchestrator, _call({"query": "a"}))
    failed = _run(orchestrator, _call({}, name="nope"))
    summary = orchestrator.create_tool_execution_summary([ok, failed], total_rounds=1)
    assert summary["total_calls"] == 2
    assert summary["successful_calls"] == 1
    assert summary["sources_found"] == 1
