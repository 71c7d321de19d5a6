"""Shared fixtures: a scripted model client and a small tool registry."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from labvalet.llm.base import LLMResponse, StreamChunk
from labvalet.tools.models import ToolCategory, ToolDefinition, ToolExecutionError
from labvalet.tools.registry import ToolRegistry


def text_chunk(content: str) -> StreamChunk:
    return StreamChunk(content=content)


class ScriptedLLMClient:
    """
    Model client that replays scripted steps.

    Each step is a list of items: a StreamChunk is yielded, an Exception is
    raised, an asyncio.Event is awaited. When the script runs out every
    further step answers with ``fallback_text``.
    """

    def __init__(self, steps: Optional[List[List[Any]]] = None, fallback_text: str = "Done.", completion: str = ""):
        self.steps = list(steps or [])
        self.fallback_text = fallback_text
        self.completion = completion
        self.prompts: List[List[Dict[str, Any]]] = []
        self.tools: List[Any] = []
        self.chat_calls: List[Dict[str, Any]] = []

    async def stream_completion(self, messages, tools=None, config=None):
        self.prompts.append(messages)
        self.tools.append(tools)
        step = self.steps.pop(0) if self.steps else [text_chunk(self.fallback_text)]
        for item in step:
            if isinstance(item, BaseException):
                raise item
            if isinstance(item, asyncio.Event):
                await item.wait()
                continue
            yield item

    async def chat_completion(self, messages, tools=None, config=None):
        self.chat_calls.append({"messages": messages, "config": config})
        if isinstance(self.completion, BaseException):
            raise self.completion
        return LLMResponse(content=self.completion)


class ToolRecorder:
    """Records executions of the test tools."""

    def __init__(self):
        self.executions: List[Dict[str, Any]] = []
        self.release = asyncio.Event()
        self.started = asyncio.Event()


@pytest.fixture
def scripted_llm():
    return ScriptedLLMClient


@pytest.fixture
def recorder():
    return ToolRecorder()


@pytest.fixture
def registry(recorder):
    """Registry with an auto tool, two confirmation tools, a failing tool and a slow tool."""
    registry = ToolRegistry()

    async def echo(args, context):
        recorder.executions.append({"tool": "echo", "args": args})
        return {"echo": args["text"]}

    async def add_lab_item(args, context):
        recorder.executions.append({"tool": "add_lab_item", "args": args})
        return f'Successfully added "{args["title"]}" to Labs section.'

    async def add_schedule_item(args, context):
        recorder.executions.append({"tool": "add_schedule_item", "args": args})
        return f'Added "{args["title"]}" to your Notion Schedule.'

    async def explode(args, context):
        raise ToolExecutionError("Notion credentials missing.")

    async def slow(args, context):
        recorder.executions.append({"tool": "slow", "args": args})
        recorder.started.set()
        await recorder.release.wait()
        return "finished"

    text_schema = {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    }
    title_schema = {
        "type": "object",
        "properties": {"title": {"type": "string"}, "when": {"type": "string"}},
        "required": ["title"],
    }

    registry.register(ToolDefinition(
        name="echo", description="Echo text", parameters=text_schema, executor=echo,
    ))
    registry.register(ToolDefinition(
        name="add_lab_item", description="Add a lab", parameters=title_schema,
        executor=add_lab_item, confirmation_required=True, category=ToolCategory.LABS,
        get_preview=lambda args: f'Add "{args["title"]}" to the Notion Labs page?',
    ))
    registry.register(ToolDefinition(
        name="add_schedule_item", description="Add a schedule item", parameters=title_schema,
        executor=add_schedule_item, confirmation_required=True, category=ToolCategory.SCHEDULING,
    ))
    registry.register(ToolDefinition(
        name="explode", description="Always fails", parameters={"type": "object", "properties": {}},
        executor=explode,
    ))
    registry.register(ToolDefinition(
        name="slow", description="Waits until released", parameters=text_schema, executor=slow,
    ))
    return registry
