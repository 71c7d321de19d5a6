"""
LabValet Stream Merger - One ordered, cancelable event stream per round

A round runs model steps until the model stops calling tools:

    1. Build the prompt from the sanitized history (plus the steps of this
       round so far) and the registry's tool schemas
    2. Pump the model stream into a queue: text deltas become
       MESSAGE_CHUNK events in model order
    3. Record requested tool calls, start auto-run calls as concurrent
       tasks that report back through the same queue, and suspend
       confirmation-required calls
    4. Emit each TOOL_RESULT as soon as its task completes

All steps accumulate into one assistant Message, which the caller appends.
Cancelling the round cancels the model pump and every pending tool task;
their calls are marked abandoned and nothing is returned.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from ..constants import DEFAULT_MAX_STEPS, DEFAULT_TIMEZONE
from ..message import Conversation, Message, MessagePart, PartType, Role
from ..orchestrator.prompts import build_system_prompt
from ..orchestrator.transcript_repair import sanitize_history, to_model_messages
from ..tools.models import (
    ToolCall,
    ToolCallStatus,
    ToolErrorCode,
    ToolExecutionContext,
    ToolResult,
)
from .models import EventType, tool_result_event
from .stream import ResponseStream

if TYPE_CHECKING:
    from ..orchestrator.orchestrator import ToolOrchestrator
    from ..protocols import LLMClientProtocol

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_TEXT = "I don't have anything to add."
MODEL_ERROR_TEXT = "Sorry, I couldn't generate a response: {error}"


@dataclass
class RoundConfig:
    """Tunable parameters of a conversation round."""

    max_steps: int = DEFAULT_MAX_STEPS
    """Maximum model invocations per round."""
    timezone: str = DEFAULT_TIMEZONE
    """Timezone shown to the model in the default system prompt."""
    system_prompt: Optional[str] = None
    """Fixed system prompt; built per round when None."""


class StreamMerger:
    """
    Runs the model steps of one round and merges their events.

    Usage:
        merger = StreamMerger(llm_client, orchestrator)
        message = await merger.run_round(conversation, stream, context)
        conversation.append(message)
    """

    def __init__(
        self,
        llm_client: "LLMClientProtocol",
        orchestrator: "ToolOrchestrator",
        config: Optional[RoundConfig] = None,
    ):
        self.llm_client = llm_client
        self.orchestrator = orchestrator
        self.config = config or RoundConfig()

    def _system_prompt(self) -> str:
        if self.config.system_prompt is not None:
            return self.config.system_prompt
        return build_system_prompt(timezone_name=self.config.timezone)

    async def run_round(
        self,
        conversation: Conversation,
        stream: ResponseStream,
        context: ToolExecutionContext,
    ) -> Message:
        """
        Run model steps over ``conversation`` and return the assistant message.

        The message is not appended here. Raises asyncio.CancelledError
        when the round is cancelled.
        """
        history, dropped = sanitize_history(conversation.messages)
        if dropped:
            logger.info(f"Dropped {dropped} orphaned parts from {conversation.id} before prompting")

        system_prompt = self._system_prompt()
        tools = self.orchestrator.registry.get_tools_schema() or None
        parts: List[MessagePart] = []
        steps = 0
        outcome = "completed"

        try:
            while steps < self.config.max_steps:
                steps += 1
                in_progress = [Message(role=Role.ASSISTANT, parts=list(parts))] if parts else []
                prompt = to_model_messages(history + in_progress, system_prompt=system_prompt)
                calls, awaiting = await self._run_step(prompt, tools, parts, stream, context)
                if awaiting:
                    outcome = "awaiting_confirmation"
                    break
                if not calls:
                    break
            else:
                outcome = "step_limit"
                logger.warning(
                    f"Round for {conversation.id} stopped after {steps} steps with tool calls pending a reply"
                )
        except asyncio.CancelledError:
            abandoned = [
                part.tool_call.id for part in parts
                if part.type == PartType.TOOL_CALL and part.tool_call.status == ToolCallStatus.ABANDONED
            ]
            stream.emit(EventType.EXECUTION_CANCELLED, {"abandoned_call_ids": abandoned})
            self.orchestrator.audit.log_round(
                conversation_id=conversation.id,
                steps=steps,
                tool_calls=[p.tool_call.name for p in parts if p.type == PartType.TOOL_CALL],
                outcome="cancelled",
            )
            raise
        except Exception as e:
            logger.error(f"Model call failed for {conversation.id}: {e}", exc_info=True)
            outcome = "error"
            stream.emit(EventType.ERROR, {"error": str(e), "error_type": type(e).__name__})
            error_text = MODEL_ERROR_TEXT.format(error=e)
            parts.append(MessagePart.of_text(error_text))
            stream.emit(EventType.MESSAGE_CHUNK, {"chunk": error_text})

        if not any(p.type != PartType.TOOL_RESULT and (p.text or p.tool_call) for p in parts):
            parts.append(MessagePart.of_text(EMPTY_RESPONSE_TEXT))
            stream.emit(EventType.MESSAGE_CHUNK, {"chunk": EMPTY_RESPONSE_TEXT})

        self.orchestrator.audit.log_round(
            conversation_id=conversation.id,
            steps=steps,
            tool_calls=[p.tool_call.name for p in parts if p.type == PartType.TOOL_CALL],
            outcome=outcome,
        )
        return Message(role=Role.ASSISTANT, parts=parts, metadata={"steps": steps})

    async def _run_step(
        self,
        prompt: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]],
        parts: List[MessagePart],
        stream: ResponseStream,
        context: ToolExecutionContext,
    ) -> Tuple[List[ToolCall], bool]:
        """
        Run one model invocation and the auto-run calls it requests.

        Returns:
            (calls requested in this step, whether any call awaits confirmation)
        """
        queue: asyncio.Queue = asyncio.Queue()
        pending: Dict[str, asyncio.Task] = {}
        step_calls: List[ToolCall] = []
        text_buffer: List[str] = []
        awaiting = False
        model_done = False
        model_error: Optional[BaseException] = None

        def flush_text() -> None:
            if text_buffer:
                parts.append(MessagePart.of_text("".join(text_buffer)))
                text_buffer.clear()

        pump = asyncio.create_task(self._pump_model(prompt, tools, queue))
        try:
            while not model_done or pending:
                kind, payload = await queue.get()

                if kind == "text":
                    text_buffer.append(payload)
                    stream.emit(EventType.MESSAGE_CHUNK, {"chunk": payload})

                elif kind == "calls":
                    flush_text()
                    calls = self.orchestrator.record_calls(payload)
                    for call in calls:
                        parts.append(MessagePart.of_call(call))
                        stream.emit(EventType.TOOL_CALL_START, {
                            "call_id": call.id,
                            "tool_name": call.name,
                            "arguments": call.arguments,
                            "confirmation_required": call.confirmation_required,
                        })
                    step_calls.extend(calls)

                    auto_run, needs_confirmation = self.orchestrator.partition(calls)
                    for call in auto_run:
                        pending[call.id] = asyncio.create_task(self._execute(call, context, queue))
                    for call in needs_confirmation:
                        request = self.orchestrator.request_confirmation(call, context.conversation_id)
                        stream.emit(EventType.CONFIRMATION_REQUIRED, request.to_dict())
                        awaiting = True

                elif kind == "result":
                    call, result = payload
                    pending.pop(call.id, None)
                    parts.append(MessagePart.of_result(result))
                    stream.emit(EventType.TOOL_RESULT, tool_result_event(call, result))

                elif kind == "done":
                    model_done = True

                elif kind == "error":
                    model_done = True
                    model_error = payload

            flush_text()
        except asyncio.CancelledError:
            pump.cancel()
            for task in pending.values():
                task.cancel()
            flush_text()
            for call in step_calls:
                if call.status == ToolCallStatus.REQUESTED:
                    call.status = ToolCallStatus.ABANDONED
                    logger.info(f"Tool call {call.id} ({call.name}) abandoned")
            raise

        if model_error is not None:
            raise model_error
        return step_calls, awaiting

    async def _pump_model(
        self,
        prompt: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]],
        queue: asyncio.Queue,
    ) -> None:
        try:
            async for chunk in self.llm_client.stream_completion(prompt, tools=tools):
                if chunk.content:
                    queue.put_nowait(("text", chunk.content))
                if chunk.tool_calls:
                    queue.put_nowait(("calls", list(chunk.tool_calls)))
            queue.put_nowait(("done", None))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            queue.put_nowait(("error", e))

    async def _execute(
        self,
        call: ToolCall,
        context: ToolExecutionContext,
        queue: asyncio.Queue,
    ) -> None:
        try:
            result = await self.orchestrator.execute(call, context)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Tool call {call.id} ({call.name}) crashed: {e}", exc_info=True)
            call.status = ToolCallStatus.FAILED
            result = ToolResult.error(call.id, ToolErrorCode.EXECUTION_FAILED, str(e))
        queue.put_nowait(("result", (call, result)))
