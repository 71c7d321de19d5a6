"""
LabValet Streaming Models - Data structures for streaming events

This module defines:
- Event types emitted during a conversation round
- The AgentEvent structure delivered to stream consumers
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ..tools.models import ToolCall, ToolResult


class EventType(str, Enum):
    """Types of events that can be streamed"""
    # Execution events
    EXECUTION_START = "execution_start"
    EXECUTION_END = "execution_end"
    EXECUTION_CANCELLED = "execution_cancelled"

    # Message events
    MESSAGE_CHUNK = "message_chunk"

    # Tool events
    TOOL_CALL_START = "tool_call_start"
    TOOL_RESULT = "tool_result"

    # Confirmation events
    CONFIRMATION_REQUIRED = "confirmation_required"
    CONFIRMATION_RESOLVED = "confirmation_resolved"

    # Error events
    ERROR = "error"


@dataclass
class AgentEvent:
    """
    Base event structure for streaming.

    All events have:
    - type: The type of event
    - data: Event-specific data (tool events always carry ``call_id``)
    - timestamp: When the event occurred
    - conversation_id: Which conversation produced the event
    - sequence: Position in the stream (total order)
    """
    type: EventType
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    conversation_id: Optional[str] = None
    sequence: int = 0

    @property
    def call_id(self) -> Optional[str]:
        return self.data.get("call_id")

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization"""
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "conversation_id": self.conversation_id,
            "sequence": self.sequence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentEvent":
        """Create event from dictionary"""
        return cls(
            type=EventType(data["type"]),
            data=data["data"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            conversation_id=data.get("conversation_id"),
            sequence=data.get("sequence", 0),
        )


def tool_result_event(call: ToolCall, result: ToolResult) -> Dict[str, Any]:
    """Payload of a tool_result event."""
    return {
        "call_id": call.id,
        "tool_name": call.name,
        "status": call.status.value,
        "output": result.output,
        "is_error": result.is_error,
        "error_code": result.error_code,
    }
