"""
LabValet - An AI schedule assistant for lab deadlines

LabValet turns free-form lab announcements (Slack, chat) into structured
records and only performs side effects (Notion pages, scheduled tasks)
after the user approves each one.

Key Features:
- Deterministic extraction of lab entries with timezone-correct due dates
- Confirmation-gated tool calls that survive restarts
- One ordered, cancelable event stream per round
- Local tools plus tools discovered from MCP servers

Quick Start:
    from labvalet import LabValet

    app = LabValet("config.yaml")
    stream = await app.handle_message("default", "Lab 15 (BST Maps) due Fri 11:59pm (Nov 21)")
    async for event in stream:
        print(event.type, event.data)
"""

from .app import LabValet
from .agent import ConversationAgent, ConversationPool, JsonFileConversationStore, MemoryConversationStore
from .extraction import CanonicalTextNormalizer, LabEntry, ScheduleExtractor
from .message import Conversation, Message, MessagePart, PartType, Role
from .orchestrator import ToolOrchestrator
from .streaming import AgentEvent, EventType, ResponseStream
from .streaming.merger import RoundConfig, StreamMerger
from .tools import (
    ToolCall,
    ToolCallStatus,
    ToolDefinition,
    ToolExecutionContext,
    ToolExecutor,
    ToolRegistry,
    ToolResult,
)
from .triggers import ScheduledTask, TaskScheduler

__version__ = "0.1.0"

__all__ = [
    "LabValet",
    # Conversations
    "Conversation",
    "ConversationAgent",
    "ConversationPool",
    "JsonFileConversationStore",
    "MemoryConversationStore",
    "Message",
    "MessagePart",
    "PartType",
    "Role",
    # Extraction
    "CanonicalTextNormalizer",
    "LabEntry",
    "ScheduleExtractor",
    # Tools
    "ToolCall",
    "ToolCallStatus",
    "ToolDefinition",
    "ToolExecutionContext",
    "ToolExecutor",
    "ToolOrchestrator",
    "ToolRegistry",
    "ToolResult",
    # Streaming
    "AgentEvent",
    "EventType",
    "ResponseStream",
    "RoundConfig",
    "StreamMerger",
    # Scheduling
    "ScheduledTask",
    "TaskScheduler",
]
