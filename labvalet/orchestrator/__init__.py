"""
LabValet Orchestrator Module

Confirmation-gated execution of model tool calls:
- ToolOrchestrator: partition, execute, suspend and resolve tool calls
- Confirmation matching of user replies to outstanding calls
- Transcript repair of history before it is sent to the model
- Structured audit logging of every decision

Quick Start:
    from labvalet.orchestrator import ToolOrchestrator

    orchestrator = ToolOrchestrator(registry)
    auto_run, needs_confirmation = orchestrator.partition(calls)
"""

from .audit_logger import AuditLogger
from .confirmation import (
    ConfirmationRequest,
    ReplyIntent,
    build_confirmation_request,
    classify_reply,
    classify_simple_reply,
    match_decisions,
)
from .orchestrator import Resolution, ToolOrchestrator
from .prompts import build_system_prompt
from .transcript_repair import (
    AWAITING_CONFIRMATION_RESULT,
    sanitize_history,
    to_model_messages,
)

__all__ = [
    "ToolOrchestrator",
    "Resolution",
    "AuditLogger",
    "ConfirmationRequest",
    "ReplyIntent",
    "build_confirmation_request",
    "classify_reply",
    "classify_simple_reply",
    "match_decisions",
    "build_system_prompt",
    "AWAITING_CONFIRMATION_RESULT",
    "sanitize_history",
    "to_model_messages",
]
