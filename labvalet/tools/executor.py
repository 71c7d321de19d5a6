"""
LabValet Tool Executor - Validate arguments and run a single tool call

Note:
    Confirmation logic is handled by the ToolOrchestrator, not here.
    The executor only turns a ToolCall into exactly one ToolResult and
    never raises for tool failures.
"""

import asyncio
import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from .models import (
    ToolCall,
    ToolErrorCode,
    ToolExecutionContext,
    ToolExecutionError,
    ToolResult,
)
from .registry import ToolRegistry
from .validation import format_validation_error, validate_arguments

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Executes tool calls against a ToolRegistry

    Usage:
        executor = ToolExecutor(registry, timeout=30)
        result = await executor.execute(call, context)
    """

    def __init__(self, registry: ToolRegistry, timeout: Optional[float] = 30.0):
        self.registry = registry
        self.timeout = timeout

    def check(self, call: ToolCall) -> Optional[ToolResult]:
        """
        Pre-flight check of a call without running it.

        Returns:
            An error ToolResult for unknown tools or invalid arguments,
            otherwise None
        """
        tool = self.registry.get_tool(call.name)
        if tool is None:
            return ToolResult.error(
                call.id, ToolErrorCode.UNKNOWN_TOOL, f"Unknown tool '{call.name}'"
            )

        if call.arguments_error:
            return ToolResult.error(
                call.id,
                ToolErrorCode.INVALID_ARGUMENTS,
                f"Arguments for '{call.name}' are not valid JSON: {call.arguments_error}",
            )

        try:
            validate_arguments(tool, call.arguments)
        except (ValidationError, TypeError) as e:
            return ToolResult.error(
                call.id,
                ToolErrorCode.INVALID_ARGUMENTS,
                f"Invalid arguments for '{call.name}': {format_validation_error(e)}",
            )
        return None

    async def execute(self, call: ToolCall, context: ToolExecutionContext) -> ToolResult:
        """Execute a single tool call"""
        rejected = self.check(call)
        if rejected is not None:
            logger.warning(f"Tool call {call.id} rejected: {rejected.output['message']}")
            return rejected

        tool = self.registry.get_tool(call.name)
        arguments = validate_arguments(tool, call.arguments)

        try:
            if self.timeout:
                output = await asyncio.wait_for(
                    tool.executor(arguments, context), timeout=self.timeout
                )
            else:
                output = await tool.executor(arguments, context)
        except asyncio.TimeoutError:
            logger.warning(f"Tool '{call.name}' timed out after {self.timeout}s")
            return ToolResult.error(
                call.id,
                ToolErrorCode.TIMEOUT,
                f"Tool '{call.name}' timed out after {self.timeout}s",
            )
        except ToolExecutionError as e:
            logger.warning(f"Tool '{call.name}' reported failure: {e}")
            return ToolResult.error(call.id, ToolErrorCode.EXECUTION_FAILED, str(e))
        except Exception as e:
            logger.error(f"Tool '{call.name}' execution failed: {e}", exc_info=True)
            return ToolResult.error(
                call.id,
                ToolErrorCode.EXECUTION_FAILED,
                f"Error executing {call.name}: {e}",
            )

        return ToolResult(call_id=call.id, output=_jsonable(output))


def _jsonable(value: Any) -> Any:
    """Make executor output safe to persist as JSON."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return json.loads(json.dumps(value, default=str))


def render_output(result: ToolResult) -> str:
    """Render a ToolResult output as the string content sent to the model."""
    output = result.output
    if isinstance(output, str):
        return output
    return json.dumps(output, ensure_ascii=False, indent=2, default=str)
