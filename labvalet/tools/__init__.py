"""
LabValet Tools - Tool definitions, registry and execution
"""

from .models import (
    ToolCall,
    ToolCallStatus,
    ToolCategory,
    ToolDefinition,
    ToolErrorCode,
    ToolExecutionContext,
    ToolExecutionError,
    ToolResult,
)
from .registry import ToolRegistry
from .executor import ToolExecutor, render_output

__all__ = [
    "ToolCall",
    "ToolCallStatus",
    "ToolCategory",
    "ToolDefinition",
    "ToolErrorCode",
    "ToolExecutionContext",
    "ToolExecutionError",
    "ToolResult",
    "ToolRegistry",
    "ToolExecutor",
    "render_output",
]
