"""
LabValet Streaming Module

Event types and the ResponseStream consumed by callers of a round. The
StreamMerger that produces the events lives in ``labvalet.streaming.merger``.
"""

from .models import AgentEvent, EventType, tool_result_event
from .stream import ResponseStream

__all__ = [
    "AgentEvent",
    "EventType",
    "ResponseStream",
    "tool_result_event",
]
