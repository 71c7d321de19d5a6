"""
Structured audit logging for tool-orchestration decisions.

Produces JSON log entries via Python's standard logging module under
the ``labvalet.audit`` logger name. Each entry includes a timestamp,
event_type, conversation_id, and event-specific fields.

Usage::

    audit = AuditLogger()
    audit.log_confirmation_decision(
        conversation_id="slack-automation",
        call_id="call_1",
        tool_name="add_lab_item",
        decision="approved",
        match_kind="simple_reply",
    )
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

_audit_logger = logging.getLogger("labvalet.audit")


def summarize_arguments(arguments: Dict[str, Any], max_len: int = 80) -> Dict[str, Any]:
    """Truncate long argument values for logging."""
    summary: Dict[str, Any] = {}
    for key, value in (arguments or {}).items():
        text = value if isinstance(value, str) else json.dumps(value, default=str)
        summary[key] = text if len(text) <= max_len else text[:max_len] + "..."
    return summary


class AuditLogger:
    """Structured audit logger for key orchestrator decisions."""

    def _emit(self, event_type: str, fields: Dict[str, Any]) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
        }
        entry.update(fields)
        _audit_logger.info(json.dumps(entry, default=str))

    def log_tool_execution(
        self,
        conversation_id: str,
        call_id: str,
        tool_name: str,
        args_summary: Dict[str, Any],
        success: bool,
        duration_ms: int,
        error: Optional[str] = None,
    ) -> None:
        """Log a tool execution result."""
        fields: Dict[str, Any] = {
            "conversation_id": conversation_id,
            "call_id": call_id,
            "tool_name": tool_name,
            "args_summary": args_summary,
            "success": success,
            "duration_ms": duration_ms,
        }
        if error is not None:
            fields["error"] = error
        self._emit("tool_execution", fields)

    def log_confirmation_requested(
        self,
        conversation_id: str,
        call_id: str,
        tool_name: str,
    ) -> None:
        """Log that a call was suspended pending approval."""
        self._emit("confirmation_requested", {
            "conversation_id": conversation_id,
            "call_id": call_id,
            "tool_name": tool_name,
        })

    def log_confirmation_decision(
        self,
        conversation_id: str,
        call_id: str,
        tool_name: str,
        decision: str,
        match_kind: str,
        reply_message_id: Optional[str] = None,
    ) -> None:
        """Log an approval or denial."""
        self._emit("confirmation_decision", {
            "conversation_id": conversation_id,
            "call_id": call_id,
            "tool_name": tool_name,
            "decision": decision,
            "match_kind": match_kind,
            "reply_message_id": reply_message_id,
        })

    def log_round(
        self,
        conversation_id: str,
        steps: int,
        tool_calls: List[str],
        outcome: str,
    ) -> None:
        """Log a round summary."""
        self._emit("round", {
            "conversation_id": conversation_id,
            "steps": steps,
            "tool_calls": tool_calls,
            "tool_calls_count": len(tool_calls),
            "outcome": outcome,
        })
