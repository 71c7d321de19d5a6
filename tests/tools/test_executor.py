"""Tests for labvalet.tools.executor"""

import asyncio
from datetime import datetime, timezone

from labvalet.tools.executor import ToolExecutor, render_output
from labvalet.tools.models import (
    ToolCall,
    ToolDefinition,
    ToolErrorCode,
    ToolExecutionContext,
    ToolResult,
)


CONTEXT = ToolExecutionContext(conversation_id="test")


def _call(name, arguments=None, **kwargs):
    return ToolCall(id=f"call_{name}", name=name, arguments=arguments or {}, **kwargs)


class TestCheck:

    def test_unknown_tool(self, registry):
        result = ToolExecutor(registry).check(_call("nope"))
        assert result.is_error
        assert result.error_code == ToolErrorCode.UNKNOWN_TOOL.value

    def test_invalid_arguments(self, registry):
        result = ToolExecutor(registry).check(_call("echo", {}))
        assert result.error_code == ToolErrorCode.INVALID_ARGUMENTS.value
        assert "text" in result.output["message"]

    def test_unparseable_arguments(self, registry):
        call = _call("echo", arguments_error="Expecting value: line 1 column 1")
        result = ToolExecutor(registry).check(call)
        assert result.error_code == ToolErrorCode.INVALID_ARGUMENTS.value

    def test_valid_call_passes(self, registry):
        assert ToolExecutor(registry).check(_call("echo", {"text": "hi"})) is None


class TestExecute:

    async def test_success(self, registry, recorder):
        result = await ToolExecutor(registry).execute(_call("echo", {"text": "hi"}), CONTEXT)
        assert result == ToolResult(call_id="call_echo", output={"echo": "hi"})
        assert recorder.executions == [{"tool": "echo", "args": {"text": "hi"}}]

    async def test_invalid_arguments_never_run(self, registry, recorder):
        result = await ToolExecutor(registry).execute(_call("echo", {"text": 5}), CONTEXT)
        assert result.is_error
        assert recorder.executions == []

    async def test_tool_execution_error(self, registry):
        result = await ToolExecutor(registry).execute(_call("explode"), CONTEXT)
        assert result.is_error
        assert result.error_code == ToolErrorCode.EXECUTION_FAILED.value
        assert result.output == {"error": "execution-failed", "message": "Notion credentials missing."}

    async def test_unexpected_exception(self, registry):
        async def broken(args, context):
            raise RuntimeError("boom")

        registry.register(ToolDefinition(
            name="broken", description="", parameters={"type": "object", "properties": {}}, executor=broken,
        ))
        result = await ToolExecutor(registry).execute(_call("broken"), CONTEXT)
        assert result.error_code == ToolErrorCode.EXECUTION_FAILED.value
        assert "boom" in result.output["message"]

    async def test_timeout(self, registry, recorder):
        executor = ToolExecutor(registry, timeout=0.05)
        result = await executor.execute(_call("slow", {"text": "x"}), CONTEXT)
        assert result.error_code == ToolErrorCode.TIMEOUT.value

    async def test_output_made_json_safe(self, registry):
        when = datetime(2025, 11, 22, 7, 59, tzinfo=timezone.utc)

        async def dated(args, context):
            return {"due": when}

        registry.register(ToolDefinition(
            name="dated", description="", parameters={"type": "object", "properties": {}}, executor=dated,
        ))
        result = await ToolExecutor(registry).execute(_call("dated"), CONTEXT)
        assert result.output == {"due": str(when)}

    async def test_cancellation_propagates(self, registry, recorder):
        task = asyncio.create_task(ToolExecutor(registry).execute(_call("slow", {"text": "x"}), CONTEXT))
        await recorder.started.wait()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        assert task.cancelled()


class TestRenderOutput:

    def test_string_passthrough(self):
        assert render_output(ToolResult(call_id="a", output="plain")) == "plain"

    def test_json_for_structures(self):
        rendered = render_output(ToolResult(call_id="a", output=[{"labNumber": 15}]))
        assert '"labNumber": 15' in rendered
