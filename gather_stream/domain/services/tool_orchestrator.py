"""
Tool orchestrator service - Domain service managing tool execution flow.
Runs collected tool calls sequentially and converts failures into neutral
tool-result text so the conversation can proceed without them.
"""

from __future__ import annotations
import logging
import time
from typing import List, Dict, Any, Optional

from ..models.tool import ToolCall, ToolResult, ToolExecutionContext
from ..interfaces.tool_plugin import ToolRegistry

FAILURE_PREFIX = "search failed"


def failure_result(tool_call: ToolCall, reason: str) -> ToolResult:
    """Neutral tool result reported to the model when a call fails."""
    return ToolResult(
        tool_call_id=tool_call.id,
        text=f"{FAILURE_PREFIX}: {reason}",
        sources=[],
        success=False,
    )


class ToolOrchestrator:
    """Domain service for executing tool calls in conversation order."""

    def __init__(
        self,
        tool_registry: ToolRegistry,
        logger: Optional[logging.Logger] = None
    ):
        self._registry = tool_registry
        self._logger = logger or logging.getLogger(__name__)

    async def execute_tool_call(
        self,
        tool_call: ToolCall,
        context: ToolExecutionContext
    ) -> ToolResult:
        """Execute one tool call; errors become a failure result.

        Cancellation is not caught, so an expired request deadline still
        abandons the call.
        """
        start_time = time.time()
        try:
            result = await self._registry.execute_tool(tool_call, context)
        except Exception as e:
            self._logger.error(f"Tool {tool_call.name} execution failed: {e}")
            result = failure_result(tool_call, str(e) or type(e).__name__)

        result.execution_time_ms = (time.time() - start_time) * 1000
        self._logger.debug(
            f"Tool {tool_call.name} {'succeeded' if result.success else 'failed'} "
            f"in {result.execution_time_ms:.1f}ms"
        )
        return result

    async def execute_tool_calls(
        self,
        tool_calls: List[ToolCall],
        context: ToolExecutionContext
    ) -> List[ToolResult]:
        """Execute a list of tool calls one after another, in order."""
        results = []
        for tool_call in tool_calls:
            self._logger.info(
                f"[{context.request_id}] Executing tool {tool_call.name} (round {context.current_round + 1})"
            )
            results.append(await self.execute_tool_call(tool_call, context))
        return results

    def prepare_tools(self) -> List[Any]:
        """Tool schemas to declare on the upstream request."""
        schemas = self._registry.get_schemas()
        self._logger.debug(f"Prepared {len(schemas)} tools for API")
        return schemas

    def create_tool_execution_summary(
        self,
        results: List[ToolResult],
        total_rounds: int
    ) -> Dict[str, Any]:
        """Create summary of tool execution for logging/debugging."""
        successful = [r for r in results if r.success]
        total_execution_time = sum(r.execution_time_ms or 0.0 for r in results)
        return {
            "total_calls": len(results),
            "successful_calls": len(successful),
            "failed_calls": len(results) - len(successful),
            "rounds_executed": total_rounds,
            "sources_found": sum(len(r.sources) for r in results),
            "total_execution_time_ms": round(total_execution_time, 1),
        }
