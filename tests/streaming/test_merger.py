"""Tests for labvalet.streaming.merger"""

import asyncio

import pytest

from labvalet.llm.base import StreamChunk, ToolCallRequest
from labvalet.message import Conversation, Message, PartType, Role
from labvalet.orchestrator.orchestrator import ToolOrchestrator
from labvalet.streaming import EventType, ResponseStream
from labvalet.streaming.merger import (
    EMPTY_RESPONSE_TEXT,
    RoundConfig,
    StreamMerger,
)
from labvalet.tools.models import ToolCallStatus, ToolExecutionContext


CONTEXT = ToolExecutionContext(conversation_id="c1")


def text_chunk(content):
    return StreamChunk(content=content)


def calls_chunk(*calls):
    return StreamChunk(
        tool_calls=[ToolCallRequest(id=cid, name=name, arguments=args) for cid, name, args in calls],
        is_final=True,
    )


def _conversation(text="Lab 15 (BST Maps) is due Friday"):
    conv = Conversation(id="c1")
    conv.append(Message.text(Role.USER, text))
    return conv


async def _run(llm, registry, conv=None, config=None):
    merger = StreamMerger(llm, ToolOrchestrator(registry), config or RoundConfig(system_prompt="sys"))
    stream = ResponseStream("c1")
    message = await merger.run_round(conv or _conversation(), stream, CONTEXT)
    stream.close(message=message)
    return message, await stream.collect()


def _types(events):
    return [e.type for e in events]


class TestTextRound:

    async def test_chunks_stream_in_order(self, scripted_llm, registry):
        llm = scripted_llm([[text_chunk("Lab 15 "), text_chunk("is due Friday.")]])

        message, events = await _run(llm, registry)

        assert [e.data["chunk"] for e in events] == ["Lab 15 ", "is due Friday."]
        assert message.role == Role.ASSISTANT
        assert message.get_text() == "Lab 15 is due Friday."
        assert message.metadata["steps"] == 1
        assert len(llm.prompts) == 1
        assert llm.prompts[0][0] == {"role": "system", "content": "sys"}
        assert llm.prompts[0][-1]["content"] == "Lab 15 (BST Maps) is due Friday"
        assert {t["function"]["name"] for t in llm.tools[0]} >= {"echo", "add_lab_item"}

    async def test_empty_model_output_gets_placeholder(self, scripted_llm, registry):
        llm = scripted_llm([[]])
        message, events = await _run(llm, registry)
        assert message.get_text() == EMPTY_RESPONSE_TEXT
        assert events[-1].data["chunk"] == EMPTY_RESPONSE_TEXT

    async def test_history_is_not_modified(self, scripted_llm, registry):
        conv = _conversation()
        await _run(scripted_llm(), registry, conv)
        assert len(conv) == 1


class TestToolRound:

    async def test_auto_run_calls_and_follow_up_step(self, scripted_llm, registry, recorder):
        llm = scripted_llm([
            [text_chunk("Checking. "), calls_chunk(("a", "echo", {"text": "one"}), ("b", "echo", {"text": "two"}))],
            [text_chunk("Both done.")],
        ])

        message, events = await _run(llm, registry)

        assert _types(events) == [
            EventType.MESSAGE_CHUNK,
            EventType.TOOL_CALL_START,
            EventType.TOOL_CALL_START,
            EventType.TOOL_RESULT,
            EventType.TOOL_RESULT,
            EventType.MESSAGE_CHUNK,
        ]
        assert [e.sequence for e in events] == list(range(6))
        assert {e.call_id for e in events if e.type == EventType.TOOL_RESULT} == {"a", "b"}
        assert len(recorder.executions) == 2

        kinds = [p.type for p in message.parts]
        assert kinds[:3] == [PartType.TEXT, PartType.TOOL_CALL, PartType.TOOL_CALL]
        assert kinds[-1] == PartType.TEXT
        assert {r.call_id for r in message.tool_results()} == {"a", "b"}
        assert all(c.status == ToolCallStatus.EXECUTED for c in message.tool_calls())
        assert message.metadata["steps"] == 2

        # the second step sees both results right after the requesting step
        second = llm.prompts[1]
        assert [m["role"] for m in second[-3:]] == ["assistant", "tool", "tool"]
        assert second[-3]["content"] == "Checking. "

    async def test_confirmation_call_stops_the_round(self, scripted_llm, registry, recorder):
        llm = scripted_llm([[calls_chunk(("c1", "add_lab_item", {"title": "Lab 15: BST Maps"}))]])

        message, events = await _run(llm, registry)

        assert _types(events) == [EventType.TOOL_CALL_START, EventType.CONFIRMATION_REQUIRED]
        request = events[1].data
        assert request["call_id"] == "c1"
        assert request["prompt"] == 'Add "Lab 15: BST Maps" to the Notion Labs page? Reply yes or no (call c1).'
        assert events[0].data["confirmation_required"] is True
        assert recorder.executions == []
        assert len(llm.prompts) == 1
        assert message.tool_calls()[0].status == ToolCallStatus.AWAITING_CONFIRMATION
        assert message.get_text() == ""

    async def test_mixed_batch_runs_auto_calls_only(self, scripted_llm, registry, recorder):
        llm = scripted_llm([[calls_chunk(
            ("e1", "echo", {"text": "hi"}),
            ("c2", "add_lab_item", {"title": "Lab 15"}),
        )]])

        message, events = await _run(llm, registry)

        assert [e["tool"] for e in recorder.executions] == ["echo"]
        assert EventType.CONFIRMATION_REQUIRED in _types(events)
        assert [r.call_id for r in message.tool_results()] == ["e1"]
        statuses = {c.id: c.status for c in message.tool_calls()}
        assert statuses == {"e1": ToolCallStatus.EXECUTED, "c2": ToolCallStatus.AWAITING_CONFIRMATION}
        assert len(llm.prompts) == 1

    async def test_invalid_confirmation_call_fails_without_prompt(self, scripted_llm, registry, recorder):
        llm = scripted_llm([
            [calls_chunk(("c1", "add_lab_item", {}), ("u1", "no_such_tool", {}))],
            [text_chunk("I couldn't add that.")],
        ])

        message, events = await _run(llm, registry)

        assert EventType.CONFIRMATION_REQUIRED not in _types(events)
        assert recorder.executions == []
        results = {r.call_id: r for r in message.tool_results()}
        assert results["c1"].is_error
        assert results["u1"].output["error"] == "unknown-tool"
        assert all(c.status == ToolCallStatus.FAILED for c in message.tool_calls())

    async def test_failing_tool_is_reported_to_model(self, scripted_llm, registry):
        llm = scripted_llm([[calls_chunk(("x", "explode", {}))], [text_chunk("Notion is not set up.")]])

        message, events = await _run(llm, registry)

        result = [e for e in events if e.type == EventType.TOOL_RESULT][0]
        assert result.data["is_error"] is True
        assert result.data["output"]["message"] == "Notion credentials missing."
        assert "Notion credentials missing." in llm.prompts[1][-1]["content"]

    async def test_step_limit(self, scripted_llm, registry):
        llm = scripted_llm([
            [calls_chunk(("a", "echo", {"text": "1"}))],
            [calls_chunk(("b", "echo", {"text": "2"}))],
        ])

        message, _ = await _run(llm, registry, config=RoundConfig(max_steps=2, system_prompt="sys"))

        assert len(llm.prompts) == 2
        assert message.metadata["steps"] == 2
        assert [r.call_id for r in message.tool_results()] == ["a", "b"]


class TestModelErrors:

    async def test_model_error_becomes_error_event(self, scripted_llm, registry):
        llm = scripted_llm([[text_chunk("Partial "), RuntimeError("rate limited")]])

        message, events = await _run(llm, registry)

        errors = [e for e in events if e.type == EventType.ERROR]
        assert errors[0].data == {"error": "rate limited", "error_type": "RuntimeError"}
        assert message.get_text().startswith("Partial ")
        assert "rate limited" in message.get_text()

    async def test_error_after_tool_step_keeps_results(self, scripted_llm, registry):
        llm = scripted_llm([
            [calls_chunk(("a", "echo", {"text": "1"}))],
            [ConnectionError("provider down")],
        ])

        message, events = await _run(llm, registry)

        assert [r.call_id for r in message.tool_results()] == ["a"]
        assert EventType.ERROR in _types(events)


class TestCancellation:

    async def test_cancel_abandons_running_calls(self, scripted_llm, registry, recorder):
        llm = scripted_llm([[calls_chunk(("s1", "slow", {"text": "x"}))]])
        merger = StreamMerger(llm, ToolOrchestrator(registry), RoundConfig(system_prompt="sys"))
        stream = ResponseStream("c1")
        task = asyncio.create_task(merger.run_round(_conversation(), stream, CONTEXT))

        await asyncio.wait_for(recorder.started.wait(), timeout=1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        stream.close()
        events = await stream.collect()
        cancelled = [e for e in events if e.type == EventType.EXECUTION_CANCELLED]
        assert cancelled[0].data == {"abandoned_call_ids": ["s1"]}
        assert EventType.TOOL_RESULT not in _types(events)

    async def test_cancel_while_model_streams(self, scripted_llm, registry):
        gate = asyncio.Event()
        llm = scripted_llm([[text_chunk("Thinking"), gate]])
        merger = StreamMerger(llm, ToolOrchestrator(registry), RoundConfig(system_prompt="sys"))
        stream = ResponseStream("c1")
        task = asyncio.create_task(merger.run_round(_conversation(), stream, CONTEXT))

        for _ in range(5):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        stream.close()
        events = await stream.collect()
        assert _types(events) == [EventType.MESSAGE_CHUNK, EventType.EXECUTION_CANCELLED]
