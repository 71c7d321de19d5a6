"""Pydantic request/response models for the LabValet API."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    metadata: Optional[dict] = None


class ChatResponse(BaseModel):
    response: str
    message_id: Optional[str] = None
    awaiting_confirmation: List[str] = []


class MessagePartModel(BaseModel):
    type: Literal["text", "tool-call", "tool-result"]
    text: Optional[str] = None
    tool_call: Optional[Dict[str, Any]] = None
    tool_result: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _payload_matches_type(self):
        payload = {"text": self.text, "tool-call": self.tool_call, "tool-result": self.tool_result}
        if payload[self.type] is None:
            raise ValueError(f"part of type '{self.type}' needs its payload")
        return self


class InjectMessageRequest(BaseModel):
    """A Message-shaped payload appended without a model round."""
    id: Optional[str] = None
    role: Literal["system", "user", "assistant"]
    parts: List[MessagePartModel] = Field(min_length=1)
    metadata: Dict[str, Any] = {}


class TaskCreateRequest(BaseModel):
    description: str = Field(min_length=1)
    trigger_time: Optional[datetime] = None
    delay_seconds: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _needs_time(self):
        if self.trigger_time is None and self.delay_seconds is None:
            raise ValueError("Either trigger_time or delay_seconds is required")
        return self


class SlackEvent(BaseModel):
    type: Optional[str] = None
    text: Optional[str] = None
    user: Optional[str] = None
    channel: Optional[str] = None
    ts: Optional[str] = None
    subtype: Optional[str] = None
    bot_id: Optional[str] = None


class SlackEnvelope(BaseModel):
    type: Optional[str] = None
    event: Optional[SlackEvent] = None
    challenge: Optional[str] = None
