"""
Tool registry implementation - Infrastructure component managing tool plugins.
Validates tool input against each tool's declared JSON schema before execution.
"""

from __future__ import annotations
import logging
from typing import Dict, List, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from ...domain.models.tool import ToolCall, ToolResult, ToolSchema, ToolExecutionContext
from ...domain.interfaces.tool_plugin import ToolRegistry, ToolPlugin
from ...domain.services.tool_orchestrator import failure_result


class DefaultToolRegistry(ToolRegistry):
    """In-process registry of tool plugins keyed by tool name."""

    def __init__(
        self,
        plugins: Optional[List[ToolPlugin]] = None,
        logger: Optional[logging.Logger] = None
    ):
        self._logger = logger or logging.getLogger(__name__)
        self._tools: Dict[str, ToolPlugin] = {}
        self._validators: Dict[str, Draft202012Validator] = {}
        for plugin in plugins or []:
            self.register_tool(plugin)

    def register_tool(self, plugin: ToolPlugin) -> None:
        """Register a tool plugin; its input schema must be a valid JSON schema."""
        schema = plugin.get_schema()
        try:
            Draft202012Validator.check_schema(schema.input_schema)
        except SchemaError as e:
            raise ValueError(f"Invalid input schema for tool '{schema.name}': {e.message}") from e
        self._tools[schema.name] = plugin
        self._validators[schema.name] = Draft202012Validator(schema.input_schema)
        self._logger.debug(f"Registered tool: {schema.name}")

    def get_tool(self, name: str) -> Optional[ToolPlugin]:
        """Get tool plugin by name."""
        return self._tools.get(name)

    def list_tools(self) -> List[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_schemas(self) -> List[ToolSchema]:
        """Get schemas of the tools currently available."""
        return [tool.get_schema() for tool in self._tools.values() if tool.is_available()]

    def validation_error(self, tool_call: ToolCall) -> Optional[str]:
        """First schema violation in the call's input, or None."""
        validator = self._validators.get(tool_call.name)
        if validator is None:
            return None
        errors = sorted(validator.iter_errors(tool_call.input), key=lambda e: list(e.path))
        if not errors:
            return None
        err = errors[0]
        where = ".".join(str(p) for p in err.path)
        return f"{where}: {err.message}" if where else err.message

    async def execute_tool(
        self,
        tool_call: ToolCall,
        context: ToolExecutionContext
    ) -> ToolResult:
        """Execute a tool call."""
        tool = self.get_tool(tool_call.name)
        if not tool:
            self._logger.warning(f"Model requested unknown tool: {tool_call.name}")
            return failure_result(tool_call, f"tool '{tool_call.name}' not found")

        if not tool.is_available():
            return failure_result(tool_call, f"tool '{tool_call.name}' not available")

        problem = self.validation_error(tool_call)
        if problem:
            self._logger.warning(f"Invalid input for tool {tool_call.name}: {problem}")
            return failure_result(tool_call, f"invalid input ({problem})")

        return await tool.execute(tool_call, context)
