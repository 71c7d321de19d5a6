"""
ConversationAgent - Single writer of one conversation's history

Every mutation goes through one FIFO queue consumed by a single worker
task, so rounds, scheduled triggers and injected messages never interleave:

    - handle_inbound_message(): append, resolve confirmations, run a round
    - handle_scheduled_trigger(): same, with a system message for the task
    - handle_direct_injection(): append only, no model round

Each append is persisted before the job continues. A round that is
cancelled appends no assistant message; status changes of calls already
in history (approved calls that were abandoned) are still persisted.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..constants import SCHEDULED_TASK_TEMPLATE, SOURCE_SCHEDULER
from ..message import Conversation, Message, MessagePart, Role
from ..orchestrator.orchestrator import ToolOrchestrator
from ..protocols import ConversationStoreProtocol
from ..streaming.merger import StreamMerger
from ..streaming.models import EventType
from ..streaming.stream import ResponseStream
from ..tools.models import ToolCall, ToolExecutionContext
from ..triggers.models import ScheduledTask

logger = logging.getLogger(__name__)

PENDING_REMINDER = "Still waiting for your answer on:"


@dataclass
class _Job:
    message: Message
    run_round: bool
    stream: Optional[ResponseStream] = None
    future: Optional[asyncio.Future] = None


class ConversationAgent:
    """
    Owns a Conversation and serializes all work on it.

    Usage:
        agent = ConversationAgent(conversation, store, orchestrator, merger)
        stream = await agent.handle_inbound_message(Message.text(Role.USER, "hi"))
        async for event in stream:
            ...
    """

    def __init__(
        self,
        conversation: Conversation,
        store: ConversationStoreProtocol,
        orchestrator: ToolOrchestrator,
        merger: StreamMerger,
        context_metadata: Optional[Dict[str, Any]] = None,
    ):
        self.conversation = conversation
        self.store = store
        self.orchestrator = orchestrator
        self.merger = merger
        self._context_metadata = context_metadata or {}
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._current_round: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def conversation_id(self) -> str:
        return self.conversation.id

    @property
    def busy(self) -> bool:
        return self._current_round is not None or not self._queue.empty()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle_inbound_message(self, message: Message) -> ResponseStream:
        """Queue a message that drives a round. Events arrive on the returned stream."""
        stream = ResponseStream(self.conversation_id)
        self._submit(_Job(message=message, run_round=True, stream=stream))
        return stream

    async def handle_scheduled_trigger(self, task: ScheduledTask) -> ResponseStream:
        """Queue a system message for a fired task; it drives a round like a user message."""
        message = Message.text(
            Role.SYSTEM,
            SCHEDULED_TASK_TEMPLATE.format(description=task.description),
            source=SOURCE_SCHEDULER,
            task_id=task.id,
        )
        logger.info(f"Scheduled task {task.id} queued on {self.conversation_id}")
        return await self.handle_inbound_message(message)

    async def handle_direct_injection(self, message: Union[Message, Dict[str, Any]]) -> Message:
        """Append a relayed message without running the model. Returns the stored message."""
        if isinstance(message, dict):
            message = Message.from_dict(message)
        future = asyncio.get_running_loop().create_future()
        self._submit(_Job(message=message, run_round=False, future=future))
        return await future

    async def get_history(self) -> List[Message]:
        """Read-only copy of the current history."""
        return [Message.from_dict(m.to_dict()) for m in self.conversation.messages]

    async def stop(self) -> None:
        """Cancel the running round and stop the worker. Queued jobs fail."""
        self._closed = True
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        while not self._queue.empty():
            self._reject(self._queue.get_nowait())

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _submit(self, job: _Job) -> None:
        if self._closed:
            raise RuntimeError(f"Conversation agent {self.conversation_id} is stopped")
        self._queue.put_nowait(job)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run_worker())

    @staticmethod
    def _reject(job: _Job) -> None:
        error = RuntimeError("Conversation agent stopped")
        if job.stream is not None:
            job.stream.close(error=error)
        if job.future is not None and not job.future.done():
            job.future.set_exception(error)

    async def _run_worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                if self._closed:
                    self._reject(job)
                elif job.run_round:
                    await self._run_round_job(job)
                else:
                    await self._run_injection_job(job)
            except asyncio.CancelledError:
                self._reject(job)
                raise
            except Exception as e:
                logger.error(f"Job on {self.conversation_id} failed: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def _run_injection_job(self, job: _Job) -> None:
        stored = self.conversation.get_message(job.message.id)
        if stored is not None:
            # Redelivered relay: the first copy stands
            logger.info(f"Message {stored.id} already in {self.conversation_id}; not appended again")
            if not job.future.done():
                job.future.set_result(stored)
            return
        try:
            await self._append(job.message)
        except Exception as e:
            if not job.future.done():
                job.future.set_exception(e)
            return
        logger.info(
            f"Injected message {job.message.id} into {self.conversation_id} "
            f"(source={job.message.source})"
        )
        if not job.future.done():
            job.future.set_result(job.message)

    async def _run_round_job(self, job: _Job) -> None:
        stream = job.stream
        if stream.cancelled:
            logger.info(f"Round for message {job.message.id} cancelled before it started")
            stream.close()
            return

        round_task = asyncio.create_task(self._round(job.message, stream))
        self._current_round = round_task
        stream.bind(round_task.cancel)
        try:
            await asyncio.wait({round_task})
        except asyncio.CancelledError:
            # Worker stopped: the round goes down with it
            round_task.cancel()
            await asyncio.wait({round_task})
            raise
        finally:
            self._current_round = None

        if round_task.cancelled():
            logger.info(f"Round on {self.conversation_id} cancelled; no assistant message appended")
            try:
                await self._persist()
            except Exception as e:
                logger.error(f"Failed to persist cancelled round on {self.conversation_id}: {e}", exc_info=True)
            stream.close()
            return

        error = round_task.exception()
        if error is not None:
            logger.error(f"Round on {self.conversation_id} failed: {error}", exc_info=error)
            stream.emit(EventType.ERROR, {"error": str(error), "error_type": type(error).__name__})
            stream.close(error=error)

    # ------------------------------------------------------------------
    # Round
    # ------------------------------------------------------------------

    async def _round(self, message: Message, stream: ResponseStream) -> None:
        stream.emit(EventType.EXECUTION_START, {"message_id": message.id, "role": message.role.value})
        await self._append(message)

        context = ToolExecutionContext(
            conversation_id=self.conversation_id,
            metadata={**self._context_metadata, "message_id": message.id, "source": message.source},
        )

        if message.role == Role.USER:
            resolution = await self.orchestrator.resolve(
                self.conversation, message, context, stream.emit, self._persist,
            )
            if resolution.matched and resolution.remaining:
                reminder = self._reminder(resolution.remaining)
                await self._append(reminder)
                stream.emit(EventType.MESSAGE_CHUNK, {"chunk": reminder.get_text()})
                self._finish(stream, reminder)
                return

        reply = await self.merger.run_round(self.conversation, stream, context)
        await self._append(reply)
        self._finish(stream, reply)

    def _finish(self, stream: ResponseStream, reply: Message) -> None:
        awaiting = [call.id for call in self.pending_calls()]
        stream.emit(EventType.EXECUTION_END, {
            "message_id": reply.id,
            "awaiting_confirmation": awaiting,
        })
        stream.close(reply)

    def _reminder(self, remaining: List[ToolCall]) -> Message:
        lines = [PENDING_REMINDER]
        for call in remaining:
            lines.append(f"- {call.name} (call {call.id})")
        lines.append("Reply yes or no with the call id.")
        return Message(
            role=Role.ASSISTANT,
            parts=[MessagePart.of_text("\n".join(lines))],
            metadata={"kind": "confirmation-reminder"},
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _append(self, message: Message) -> None:
        """Append and persist; the in-memory append is undone if the save fails."""
        self.conversation.append(message)
        try:
            await self._persist()
        except Exception:
            self.conversation.messages.pop()
            raise

    async def _persist(self) -> None:
        try:
            await self.store.save(self.conversation)
        except Exception as e:
            logger.error(f"Failed to persist conversation {self.conversation_id}: {e}", exc_info=True)
            raise

    def pending_calls(self) -> List[ToolCall]:
        """Calls currently awaiting confirmation, oldest first."""
        return [call for _, calls in self.conversation.awaiting_confirmation() for call in calls]
