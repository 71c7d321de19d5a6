"""
ResponseStream - The caller's view of one conversation round

Events are pushed by the round as they are produced and consumed with
``async for``. Every event gets the next sequence number when it is
pushed, so the stream is totally ordered. Leaving the ``async for`` early
or calling ``cancel()`` aborts the round.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from .models import AgentEvent, EventType

logger = logging.getLogger(__name__)

_DONE = object()


class ResponseStream:
    """
    Async iterator of AgentEvents for a single round.

    Example:
        stream = await agent.handle_inbound_message(message)
        async for event in stream:
            if event.type == EventType.MESSAGE_CHUNK:
                print(event.data["chunk"], end="")
    """

    def __init__(self, conversation_id: Optional[str] = None):
        self.conversation_id = conversation_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._sequence = 0
        self._closed = False
        self._cancelled = False
        self._canceller: Optional[Callable[[], Any]] = None
        self._finished = asyncio.Event()

        # Set when the round completes
        self.message = None
        self.error: Optional[BaseException] = None

    # ------------------------------------------------------------------
    # producer side
    # ------------------------------------------------------------------

    def emit(self, event_type: EventType, data: Dict[str, Any]) -> Optional[AgentEvent]:
        """Push an event. Ignored once the stream is closed."""
        if self._closed:
            return None
        event = AgentEvent(
            type=event_type,
            data=data,
            conversation_id=self.conversation_id,
            sequence=self._sequence,
        )
        self._sequence += 1
        self._queue.put_nowait(event)
        return event

    def bind(self, canceller: Callable[[], Any]) -> None:
        """Attach the callable that aborts the running round."""
        self._canceller = canceller
        if self._cancelled and not self._closed:
            canceller()

    def close(self, message=None, error: Optional[BaseException] = None) -> None:
        """Mark the round finished. ``message`` is the appended assistant message."""
        if self._closed:
            return
        self._closed = True
        self.message = message
        self.error = error
        self._queue.put_nowait(_DONE)
        self._finished.set()

    # ------------------------------------------------------------------
    # consumer side
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Abort the round. Pending tool executions are abandoned."""
        if self._closed or self._cancelled:
            return
        self._cancelled = True
        logger.info(f"Response stream for {self.conversation_id} cancelled by caller")
        if self._canceller is not None:
            self._canceller()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        finished = False
        try:
            while True:
                item = await self._queue.get()
                if item is _DONE:
                    finished = True
                    return
                yield item
        finally:
            if not finished:
                self.cancel()

    async def wait_closed(self) -> None:
        """Wait until the round has finished (or was cancelled)."""
        await self._finished.wait()

    async def collect(self) -> List[AgentEvent]:
        """Consume the whole stream and return its events."""
        return [event async for event in self]

    async def text(self) -> str:
        """Consume the whole stream and return the concatenated model text."""
        chunks = []
        async for event in self:
            if event.type == EventType.MESSAGE_CHUNK:
                chunks.append(event.data.get("chunk", ""))
        return "".join(chunks)
