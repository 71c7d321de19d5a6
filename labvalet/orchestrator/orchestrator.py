"""
LabValet Tool Orchestrator - Confirmation-gated execution of model tool calls

The orchestrator sits between the model's tool-call requests and the tool
executors:

    1. record_calls(): turn model requests into ToolCalls (policy copied
       from the registry)
    2. partition(): split into auto-run and confirmation-required calls
    3. execute(): run one call, never raising for tool failures
    4. request_confirmation(): suspend a call until the user answers
    5. resolve(): at the start of a round, interpret the user's reply
       against outstanding calls, run the approved ones and record the
       results as a new assistant turn

A confirmation-required call only runs after an approval has been written
to history: the user's reply is appended and persisted before resolve()
is called, and approved statuses are persisted before any executor starts.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..llm.base import ToolCallRequest
from ..message import Conversation, Message, MessagePart, Role
from ..streaming.models import EventType, tool_result_event
from ..tools.executor import ToolExecutor
from ..tools.models import (
    ToolCall,
    ToolCallStatus,
    ToolExecutionContext,
    ToolResult,
)
from ..tools.registry import ToolRegistry
from .audit_logger import AuditLogger, summarize_arguments
from .confirmation import ConfirmationRequest, build_confirmation_request, match_decisions

logger = logging.getLogger(__name__)

PersistCallback = Callable[[], Awaitable[None]]


@dataclass
class Resolution:
    """Outcome of interpreting a user reply against outstanding confirmations."""
    decisions: Dict[str, bool] = field(default_factory=dict)
    match_kind: str = "none"
    results: List[ToolResult] = field(default_factory=list)
    message: Optional[Message] = None
    remaining: List[ToolCall] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return bool(self.decisions)

    @property
    def approved(self) -> List[str]:
        return [call_id for call_id, ok in self.decisions.items() if ok]

    @property
    def denied(self) -> List[str]:
        return [call_id for call_id, ok in self.decisions.items() if not ok]


class ToolOrchestrator:
    """
    Applies the confirmation policy to model-requested tool calls.

    Usage:
        orchestrator = ToolOrchestrator(registry, ToolExecutor(registry))
        calls = orchestrator.record_calls(chunk.tool_calls)
        auto_run, needs_confirmation = orchestrator.partition(calls)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        executor: Optional[ToolExecutor] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.registry = registry
        self.executor = executor or ToolExecutor(registry)
        self.audit = audit or AuditLogger()

    # ------------------------------------------------------------------
    # Recording and partitioning
    # ------------------------------------------------------------------

    def record_calls(self, requests: List[ToolCallRequest]) -> List[ToolCall]:
        """Create ToolCalls for model requests, tagging each with its tool's policy."""
        calls = []
        for request in requests:
            tool = self.registry.get_tool(request.name)
            calls.append(ToolCall(
                id=request.id or f"call_{uuid.uuid4().hex[:12]}",
                name=request.name,
                arguments=dict(request.arguments or {}),
                confirmation_required=bool(tool and tool.confirmation_required),
                arguments_error=request.arguments_error,
            ))
        return calls

    def partition(self, calls: List[ToolCall]) -> Tuple[List[ToolCall], List[ToolCall]]:
        """
        Split calls into (auto_run, needs_confirmation).

        Calls to unknown tools or with invalid arguments always land in
        auto_run, where the executor turns them into error results without
        running anything. A user is never asked to approve a call that
        cannot run.
        """
        auto_run: List[ToolCall] = []
        needs_confirmation: List[ToolCall] = []
        for call in calls:
            if call.confirmation_required and self.executor.check(call) is None:
                needs_confirmation.append(call)
            else:
                auto_run.append(call)
        return auto_run, needs_confirmation

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, call: ToolCall, context: ToolExecutionContext) -> ToolResult:
        """
        Execute one call and update its status.

        Never raises for tool failures; asyncio.CancelledError propagates
        and leaves the status untouched for the caller to mark abandoned.
        """
        start = time.monotonic()
        result = await self.executor.execute(call, context)
        duration_ms = int((time.monotonic() - start) * 1000)

        call.status = ToolCallStatus.FAILED if result.is_error else ToolCallStatus.EXECUTED
        error = None
        if result.is_error and isinstance(result.output, dict):
            error = result.output.get("message")
        self.audit.log_tool_execution(
            conversation_id=context.conversation_id,
            call_id=call.id,
            tool_name=call.name,
            args_summary=summarize_arguments(call.arguments),
            success=not result.is_error,
            duration_ms=duration_ms,
            error=error,
        )
        return result

    def request_confirmation(self, call: ToolCall, conversation_id: str) -> ConfirmationRequest:
        """Suspend a call until the user approves or denies it."""
        call.status = ToolCallStatus.AWAITING_CONFIRMATION
        request = build_confirmation_request(call, self.registry.get_tool(call.name))
        self.audit.log_confirmation_requested(
            conversation_id=conversation_id,
            call_id=call.id,
            tool_name=call.name,
        )
        logger.info(f"Call {call.id} ({call.name}) is awaiting confirmation")
        return request

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def outstanding(self, conversation: Conversation) -> List[Tuple[str, List[ToolCall]]]:
        """Calls awaiting confirmation, grouped by requesting turn, newest last."""
        return conversation.awaiting_confirmation()

    async def resolve(
        self,
        conversation: Conversation,
        reply: Message,
        context: ToolExecutionContext,
        emit: Callable[[EventType, Dict[str, Any]], Any],
        persist: PersistCallback,
    ) -> Resolution:
        """
        Interpret ``reply`` against outstanding confirmations.

        ``reply`` must already be appended and persisted. Approved calls
        are marked and persisted, then executed concurrently; denied calls
        get a denial result. All results are appended to ``conversation``
        as one assistant turn of tool-result parts and persisted.

        Returns:
            Resolution. ``matched`` is False when the reply is an ordinary
            message; ``remaining`` lists calls of the touched batches that
            are still waiting for an answer.
        """
        batches = self.outstanding(conversation)
        if not batches:
            return Resolution()

        decisions, match_kind = match_decisions(reply, batches)
        if not decisions:
            logger.debug(f"Reply {reply.id} does not resolve any outstanding confirmation")
            return Resolution(match_kind=match_kind)

        resolution = Resolution(decisions=decisions, match_kind=match_kind)
        calls: Dict[str, ToolCall] = {}
        touched: List[List[ToolCall]] = []
        for _, batch in batches:
            if any(call.id in decisions for call in batch):
                touched.append(batch)
            for call in batch:
                calls[call.id] = call

        for call_id, approved in decisions.items():
            call = calls[call_id]
            call.status = ToolCallStatus.APPROVED if approved else ToolCallStatus.DENIED
            decision = "approved" if approved else "denied"
            self.audit.log_confirmation_decision(
                conversation_id=conversation.id,
                call_id=call.id,
                tool_name=call.name,
                decision=decision,
                match_kind=match_kind,
                reply_message_id=reply.id,
            )
            emit(EventType.CONFIRMATION_RESOLVED, {
                "call_id": call.id,
                "tool_name": call.name,
                "decision": decision,
                "match_kind": match_kind,
            })

        # The approval record must be durable before anything runs
        await persist()

        results: Dict[str, ToolResult] = {}
        for call_id in resolution.denied:
            call = calls[call_id]
            results[call_id] = ToolResult(
                call_id=call_id,
                output={
                    "denied": True,
                    "message": f"The user denied {call.name}; it was not executed.",
                },
            )
            emit(EventType.TOOL_RESULT, tool_result_event(call, results[call_id]))

        approved_calls = [calls[call_id] for call_id in resolution.approved]
        if approved_calls:
            results.update(await self._execute_approved(approved_calls, context, emit))

        resolution.results = [results[call_id] for call_id in decisions]
        resolution.message = Message(
            role=Role.ASSISTANT,
            parts=[MessagePart.of_result(result) for result in resolution.results],
            metadata={
                "kind": "confirmation-resolution",
                "reply_id": reply.id,
                "decisions": {
                    call_id: ("approved" if ok else "denied") for call_id, ok in decisions.items()
                },
            },
        )
        conversation.append(resolution.message)
        try:
            await persist()
        except Exception:
            conversation.messages.pop()
            raise

        resolution.remaining = [
            call for batch in touched for call in batch
            if call.status == ToolCallStatus.AWAITING_CONFIRMATION
        ]
        return resolution

    async def _execute_approved(
        self,
        approved: List[ToolCall],
        context: ToolExecutionContext,
        emit: Callable[[EventType, Dict[str, Any]], Any],
    ) -> Dict[str, ToolResult]:
        """Run approved calls concurrently, emitting each result as it lands."""

        async def run(call: ToolCall) -> ToolResult:
            result = await self.execute(call, context)
            emit(EventType.TOOL_RESULT, tool_result_event(call, result))
            return result

        try:
            outcomes = await asyncio.gather(*(run(call) for call in approved))
        except asyncio.CancelledError:
            for call in approved:
                if call.status == ToolCallStatus.APPROVED:
                    call.status = ToolCallStatus.ABANDONED
                    logger.info(f"Approved call {call.id} ({call.name}) abandoned")
            raise
        return {call.id: result for call, result in zip(approved, outcomes)}
