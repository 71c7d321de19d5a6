"""
Confirmation System - Prompts for and decisions on confirmation-required calls

Provides:
- ConfirmationRequest: the prompt shown for one suspended call
- classify_reply(): deterministic affirmative/negative detection
- match_decisions(): maps a user message onto outstanding calls

A reply resolves calls in this order:
1. Structured ``metadata["confirmations"]`` ({call_id: bool | "approve" | "deny"})
2. Call ids mentioned in the text together with a yes/no word
3. A simple yes/no reply, applied to the most recent outstanding batch
Anything else is an ordinary message.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..message import Message
from ..tools.models import ToolCall, ToolDefinition

logger = logging.getLogger(__name__)

# Replies longer than this are never treated as a bare yes/no
SIMPLE_REPLY_MAX_TOKENS = 4

_AFFIRMATIVE_TOKENS = {
    "yes", "y", "yep", "yeah", "yup", "sure", "ok", "okay", "confirm",
    "confirmed", "approve", "approved", "proceed", "go", "do", "please", "ahead", "it",
    "thanks", "thank", "you", "i",
}
_AFFIRMATIVE_CORE = {
    "yes", "y", "yep", "yeah", "yup", "sure", "ok", "okay", "confirm",
    "confirmed", "approve", "approved", "proceed", "go", "do",
}
_NEGATIVE_TOKENS = {
    "no", "n", "nope", "nah", "cancel", "deny", "denied", "stop", "don't", "dont",
    "reject", "abort", "skip", "not", "never", "mind", "please", "it", "do",
    "thanks", "thank", "you", "i", "won't", "wont", "can't", "cant", "cannot", "approve",
}
_NEGATIVE_CORE = {
    "no", "n", "nope", "nah", "cancel", "deny", "denied", "stop", "don't", "dont",
    "reject", "abort", "skip", "never", "not", "won't", "wont", "can't", "cant", "cannot",
}

_STRUCTURED_APPROVE = {"approve", "approved", "yes", "confirm", "true"}
_STRUCTURED_DENY = {"deny", "denied", "no", "cancel", "false"}


class ReplyIntent(str, Enum):
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    UNKNOWN = "unknown"


@dataclass
class ConfirmationRequest:
    """Prompt presented for one call awaiting confirmation."""
    call_id: str
    tool_name: str
    prompt: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "call_id": self.call_id,
            "tool_name": self.tool_name,
            "prompt": self.prompt,
            "arguments": self.arguments,
        }


def build_confirmation_request(call: ToolCall, tool: Optional[ToolDefinition]) -> ConfirmationRequest:
    """Build the human-readable prompt for a suspended call."""
    prompt = None
    if tool is not None and tool.get_preview is not None:
        try:
            prompt = tool.get_preview(call.arguments)
        except Exception as e:
            logger.warning(f"Preview for '{call.name}' failed, using default prompt: {e}")

    if not prompt:
        args = json.dumps(call.arguments, ensure_ascii=False)
        prompt = f"Run {call.name} with {args}?"

    return ConfirmationRequest(
        call_id=call.id,
        tool_name=call.name,
        prompt=f"{prompt} Reply yes or no (call {call.id}).",
        arguments=dict(call.arguments),
    )


def _normalize_reply_text(text: str) -> str:
    raw = (text or "").strip().lower()
    if not raw:
        return ""
    raw = raw.replace("’", "'")
    for ch in ".,!?;:":
        raw = raw.replace(ch, " ")
    return " ".join(raw.split())


def classify_reply(text: str) -> ReplyIntent:
    """
    Classify a reply as affirmative, negative or unknown from its words.

    Used for the yes/no detection once call ids have been located.
    Questions are never decisions, and any no-word or negation wins over
    yes-words: "do not run it" and "yes... no wait" are denials.
    """
    if "?" in (text or ""):
        return ReplyIntent.UNKNOWN
    normalized = _normalize_reply_text(text)
    if not normalized:
        return ReplyIntent.UNKNOWN
    tokens = set(normalized.split(" "))
    if tokens & _NEGATIVE_CORE:
        return ReplyIntent.NEGATIVE
    if tokens & _AFFIRMATIVE_CORE:
        return ReplyIntent.AFFIRMATIVE
    return ReplyIntent.UNKNOWN


def classify_simple_reply(text: str) -> ReplyIntent:
    """
    Classify a short, bare yes/no reply.

    Every word must belong to the yes (or no) vocabulary: "yes",
    "ok go ahead" and "no thanks" qualify, "yes but change the date" does not.
    """
    if "?" in (text or ""):
        return ReplyIntent.UNKNOWN
    normalized = _normalize_reply_text(text)
    if not normalized:
        return ReplyIntent.UNKNOWN
    tokens = normalized.split(" ")
    if len(tokens) > SIMPLE_REPLY_MAX_TOKENS:
        return ReplyIntent.UNKNOWN
    token_set = set(tokens)
    if token_set <= _NEGATIVE_TOKENS and token_set & _NEGATIVE_CORE:
        return ReplyIntent.NEGATIVE
    if token_set <= _AFFIRMATIVE_TOKENS and token_set & _AFFIRMATIVE_CORE:
        return ReplyIntent.AFFIRMATIVE
    return ReplyIntent.UNKNOWN


def _structured_decision(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _STRUCTURED_APPROVE:
            return True
        if lowered in _STRUCTURED_DENY:
            return False
    return None


def match_decisions(
    reply: Message,
    batches: List[Tuple[str, List[ToolCall]]],
) -> Tuple[Dict[str, bool], str]:
    """
    Interpret a user message against outstanding confirmation batches.

    Args:
        reply: The new user message.
        batches: Outstanding batches, oldest first, as returned by
            ``Conversation.awaiting_confirmation()``.

    Returns:
        ({call_id: approved}, match_kind). ``match_kind`` is one of
        "structured", "call_id", "simple_reply" or "none".
    """
    outstanding: Dict[str, ToolCall] = {}
    for _, calls in batches:
        for call in calls:
            outstanding[call.id] = call

    if not outstanding:
        return {}, "none"

    # 1. structured decisions keyed by call id
    structured = reply.metadata.get("confirmations")
    if isinstance(structured, dict):
        decisions: Dict[str, bool] = {}
        for call_id, value in structured.items():
            decision = _structured_decision(value)
            if call_id in outstanding and decision is not None:
                decisions[call_id] = decision
        if decisions:
            return decisions, "structured"

    text = reply.get_text()

    # 2. explicit call ids in the text
    mentioned = [call_id for call_id in outstanding if call_id and call_id in text]
    if mentioned:
        remainder = text
        for call_id in mentioned:
            remainder = remainder.replace(call_id, " ")
        intent = classify_reply(remainder)
        if intent != ReplyIntent.UNKNOWN:
            approved = intent == ReplyIntent.AFFIRMATIVE
            return {call_id: approved for call_id in mentioned}, "call_id"

    # 3. bare yes/no applies to the most recent batch only
    intent = classify_simple_reply(text)
    if intent != ReplyIntent.UNKNOWN:
        _, latest = batches[-1]
        approved = intent == ReplyIntent.AFFIRMATIVE
        return {call.id: approved for call in latest}, "simple_reply"

    return {}, "none"
