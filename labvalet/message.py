"""
LabValet Message System - Conversation history types

A Message is an ordered list of parts. Each part is text, a tool call
requested by the model, or the result of a tool call.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .tools.models import ToolCall, ToolCallStatus, ToolResult


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class PartType(str, Enum):
    TEXT = "text"
    TOOL_CALL = "tool-call"
    TOOL_RESULT = "tool-result"


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class MessagePart:
    """One segment of a message. Exactly one payload field is set."""
    type: PartType
    text: Optional[str] = None
    tool_call: Optional[ToolCall] = None
    tool_result: Optional[ToolResult] = None

    @classmethod
    def of_text(cls, text: str) -> "MessagePart":
        return cls(type=PartType.TEXT, text=text)

    @classmethod
    def of_call(cls, call: ToolCall) -> "MessagePart":
        return cls(type=PartType.TOOL_CALL, tool_call=call)

    @classmethod
    def of_result(cls, result: ToolResult) -> "MessagePart":
        return cls(type=PartType.TOOL_RESULT, tool_result=result)

    def to_dict(self) -> Dict[str, Any]:
        if self.type == PartType.TEXT:
            return {"type": self.type.value, "text": self.text or ""}
        if self.type == PartType.TOOL_CALL:
            return {"type": self.type.value, "tool_call": self.tool_call.to_dict()}
        return {"type": self.type.value, "tool_result": self.tool_result.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessagePart":
        part_type = PartType(data["type"])
        if part_type == PartType.TEXT:
            return cls.of_text(data.get("text", ""))
        if part_type == PartType.TOOL_CALL:
            return cls.of_call(ToolCall.from_dict(data["tool_call"]))
        return cls.of_result(ToolResult.from_dict(data["tool_result"]))


@dataclass
class Message:
    """
    A single conversation message

    Examples:
        msg = Message.text(Role.USER, "Lab 15 (BST Maps) due Nov 21", source="slack")

        msg = Message(
            role=Role.ASSISTANT,
            parts=[MessagePart.of_text("Parsing..."), MessagePart.of_call(call)],
        )
    """
    role: Role
    parts: List[MessagePart]
    id: str = field(default_factory=new_id)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.parts:
            raise ValueError("Message parts must not be empty")
        if not isinstance(self.role, Role):
            self.role = Role(self.role)
        self.metadata.setdefault("created_at", utc_now_iso())

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Message id is immutable")
        super().__setattr__(name, value)

    @classmethod
    def text(
        cls,
        role: Role,
        text: str,
        source: Optional[str] = None,
        **metadata: Any,
    ) -> "Message":
        meta = dict(metadata)
        if source:
            meta["source"] = source
        return cls(role=role, parts=[MessagePart.of_text(text)], metadata=meta)

    @property
    def source(self) -> Optional[str]:
        return self.metadata.get("source")

    def get_text(self) -> str:
        """Combined text from all text parts"""
        return "".join(p.text or "" for p in self.parts if p.type == PartType.TEXT)

    def tool_calls(self) -> List[ToolCall]:
        return [p.tool_call for p in self.parts if p.type == PartType.TOOL_CALL]

    def tool_results(self) -> List[ToolResult]:
        return [p.tool_result for p in self.parts if p.type == PartType.TOOL_RESULT]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "parts": [p.to_dict() for p in self.parts],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        kwargs: Dict[str, Any] = {
            "role": Role(data["role"]),
            "parts": [MessagePart.from_dict(p) for p in data.get("parts", [])],
            "metadata": dict(data.get("metadata") or {}),
        }
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)


@dataclass
class Conversation:
    """Ordered message history of one conversation"""
    id: str
    messages: List[Message] = field(default_factory=list)

    def append(self, message: Message) -> None:
        """Append ``message``. Message ids are unique within a conversation."""
        if self.get_message(message.id) is not None:
            raise ValueError(f"Message {message.id} is already in conversation {self.id}")
        self.messages.append(message)

    def get_message(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def __len__(self) -> int:
        return len(self.messages)

    def iter_calls(self) -> Iterator[Tuple[Message, ToolCall]]:
        for message in self.messages:
            for call in message.tool_calls():
                yield message, call

    def find_call(self, call_id: str) -> Optional[ToolCall]:
        for _, call in self.iter_calls():
            if call.id == call_id:
                return call
        return None

    def results_by_call_id(self) -> Dict[str, ToolResult]:
        results: Dict[str, ToolResult] = {}
        for message in self.messages:
            for result in message.tool_results():
                results.setdefault(result.call_id, result)
        return results

    def awaiting_confirmation(self) -> List[Tuple[str, List[ToolCall]]]:
        """
        Outstanding confirmation batches, oldest first.

        Returns:
            List of (requesting message id, calls awaiting confirmation)
        """
        results = self.results_by_call_id()
        batches: List[Tuple[str, List[ToolCall]]] = []
        for message in self.messages:
            if message.role != Role.ASSISTANT:
                continue
            pending = [
                call for call in message.tool_calls()
                if call.status == ToolCallStatus.AWAITING_CONFIRMATION
                and call.id not in results
            ]
            if pending:
                batches.append((message.id, pending))
        return batches

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        return cls(
            id=data["id"],
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
        )
