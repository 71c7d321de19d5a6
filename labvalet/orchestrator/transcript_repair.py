"""
Transcript Repair - Clean conversation history before model calls

Two pure transforms over a copy of the history; persisted history is never
modified:

1. ``sanitize_history``: drops tool calls left without a result by an
   earlier, ended round (orphans from an aborted round) and tool results
   whose call no longer exists.
2. ``to_model_messages``: converts messages to OpenAI format, placing each
   tool result immediately after the assistant step that requested it.
   Calls still awaiting confirmation get a synthetic result so the model
   always sees complete call/result pairs.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from ..message import Message, MessagePart, PartType, Role
from ..tools.executor import render_output
from ..tools.models import ToolCall, ToolCallStatus, ToolResult

logger = logging.getLogger(__name__)

AWAITING_CONFIRMATION_RESULT = "Awaiting user confirmation. The user has not approved or denied this call yet."


def sanitize_history(messages: List[Message]) -> Tuple[List[Message], int]:
    """
    Drop orphaned tool calls and dangling tool results.

    Calls awaiting confirmation are kept; they are pending, not orphaned.

    Args:
        messages: History of ended rounds.

    Returns:
        Tuple of (sanitized_messages, dropped_parts_count). If nothing was
        dropped, the original list is returned.
    """
    result_ids: Set[str] = set()
    call_ids: Set[str] = set()
    for msg in messages:
        for part in msg.parts:
            if part.type == PartType.TOOL_RESULT:
                result_ids.add(part.tool_result.call_id)
            elif part.type == PartType.TOOL_CALL:
                call_ids.add(part.tool_call.id)

    dropped = 0
    sanitized: List[Message] = []
    changed = False

    for msg in messages:
        kept: List[MessagePart] = []
        for part in msg.parts:
            if part.type == PartType.TOOL_CALL:
                call = part.tool_call
                if call.id not in result_ids and call.status != ToolCallStatus.AWAITING_CONFIRMATION:
                    dropped += 1
                    logger.info(
                        f"transcript_repair: dropped orphaned tool call {call.id} "
                        f"({call.name}, status={call.status.value})"
                    )
                    continue
            elif part.type == PartType.TOOL_RESULT:
                if part.tool_result.call_id not in call_ids:
                    dropped += 1
                    logger.info(
                        f"transcript_repair: dropped tool result for unknown call "
                        f"{part.tool_result.call_id}"
                    )
                    continue
            kept.append(part)

        if len(kept) == len(msg.parts):
            sanitized.append(msg)
            continue

        changed = True
        if kept:
            sanitized.append(Message(
                role=msg.role,
                parts=kept,
                id=msg.id,
                metadata=dict(msg.metadata),
            ))

    if not changed:
        return messages, 0
    return sanitized, dropped


def _assistant_steps(parts: List[MessagePart]) -> List[Tuple[List[str], List[ToolCall]]]:
    """Split an assistant message into model steps of (texts, calls)."""
    steps: List[Tuple[List[str], List[ToolCall]]] = []
    texts: List[str] = []
    calls: List[ToolCall] = []
    seen_result = False

    for part in parts:
        if part.type == PartType.TOOL_RESULT:
            seen_result = True
            continue
        if seen_result and (texts or calls):
            steps.append((texts, calls))
            texts, calls = [], []
        seen_result = False
        if part.type == PartType.TEXT:
            if part.text:
                texts.append(part.text)
        else:
            calls.append(part.tool_call)

    if texts or calls:
        steps.append((texts, calls))
    return steps


def _tool_call_dict(call: ToolCall) -> Dict[str, Any]:
    return {
        "id": call.id,
        "type": "function",
        "function": {
            "name": call.name,
            "arguments": json.dumps(call.arguments, ensure_ascii=False),
        },
    }


def _tool_message(call: ToolCall, result: Optional[ToolResult]) -> Dict[str, Any]:
    if result is None:
        content = AWAITING_CONFIRMATION_RESULT
    else:
        content = render_output(result)
    return {"role": "tool", "tool_call_id": call.id, "content": content}


def to_model_messages(
    messages: List[Message],
    system_prompt: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Convert history to OpenAI chat format.

    Args:
        messages: Sanitized history (plus any in-progress assistant message).
        system_prompt: Optional system prompt placed first.

    Returns:
        List of OpenAI-format message dicts.
    """
    results: Dict[str, ToolResult] = {}
    for msg in messages:
        for result in msg.tool_results():
            results.setdefault(result.call_id, result)

    out: List[Dict[str, Any]] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    for msg in messages:
        if msg.role != Role.ASSISTANT:
            text = msg.get_text()
            if text:
                out.append({"role": msg.role.value, "content": text})
            continue

        for texts, calls in _assistant_steps(msg.parts):
            entry: Dict[str, Any] = {
                "role": "assistant",
                "content": "".join(texts) or None,
            }
            if calls:
                entry["tool_calls"] = [_tool_call_dict(c) for c in calls]
            out.append(entry)
            for call in calls:
                out.append(_tool_message(call, results.get(call.id)))

    return out
