"""
LabValet Tool Models - Data structures for LLM tool calling
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional


class ToolCategory(str, Enum):
    """Tool categories used for organization and logging"""
    UTILITY = "utility"
    LABS = "labs"
    SCHEDULING = "scheduling"
    DOCUMENTS = "documents"
    MCP = "mcp"


class ToolCallStatus(str, Enum):
    """Lifecycle of a single tool call"""
    REQUESTED = "requested"
    AWAITING_CONFIRMATION = "awaiting-confirmation"
    APPROVED = "approved"
    DENIED = "denied"
    EXECUTED = "executed"
    FAILED = "failed"
    ABANDONED = "abandoned"


class ToolErrorCode(str, Enum):
    """Error codes carried by failed ToolResults"""
    UNKNOWN_TOOL = "unknown-tool"
    INVALID_ARGUMENTS = "invalid-arguments"
    EXECUTION_FAILED = "execution-failed"
    TIMEOUT = "timeout"


class ToolExecutionError(Exception):
    """Raised by tool executors to report a failure with a readable message."""


@dataclass
class ToolExecutionContext:
    """
    Context passed to tool executors

    Example:
        context = ToolExecutionContext(
            conversation_id="slack-automation",
            metadata={"timezone": "America/Los_Angeles"}
        )
    """
    conversation_id: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value from metadata"""
        return self.metadata.get(key, default)


@dataclass
class ToolDefinition:
    """
    Definition of a tool that can be called by the LLM

    Attributes:
        name: Unique tool identifier (e.g., "add_lab_item")
        description: What the tool does (shown to LLM)
        parameters: JSON Schema for the arguments
        executor: Async function ``(args, context) -> Any``
        confirmation_required: Whether the user must approve each call
        category: Tool category for organization
        get_preview: Optional ``(args) -> str`` used for the confirmation prompt

    Example:
        async def add_lab_item(args: dict, context: ToolExecutionContext) -> str:
            ...

        tool = ToolDefinition(
            name="add_lab_item",
            description="Add a lab to the Notion Labs page",
            parameters={
                "type": "object",
                "properties": {"title": {"type": "string"}},
                "required": ["title"]
            },
            executor=add_lab_item,
            confirmation_required=True,
        )
    """
    name: str
    description: str
    parameters: Dict[str, Any]
    executor: Callable
    confirmation_required: bool = False
    category: ToolCategory = ToolCategory.UTILITY
    get_preview: Optional[Callable[[Dict[str, Any]], str]] = None

    def to_openai_schema(self) -> Dict[str, Any]:
        """Convert to OpenAI function calling format"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            }
        }


@dataclass
class ToolCall:
    """
    A tool call requested by the model and recorded in history

    Attributes:
        id: Unique call ID (correlates request and result)
        name: Tool name
        arguments: Parsed arguments dict
        confirmation_required: Copied from the tool definition when recorded
        status: Current lifecycle state
        arguments_error: Set when the model's arguments were not valid JSON
    """
    id: str
    name: str
    arguments: Dict[str, Any]
    confirmation_required: bool = False
    status: ToolCallStatus = ToolCallStatus.REQUESTED
    arguments_error: Optional[str] = None

    @property
    def is_settled(self) -> bool:
        return self.status in (
            ToolCallStatus.EXECUTED,
            ToolCallStatus.FAILED,
            ToolCallStatus.DENIED,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
            "confirmation_required": self.confirmation_required,
            "status": self.status.value,
        }
        if self.arguments_error:
            data["arguments_error"] = self.arguments_error
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        return cls(
            id=data["id"],
            name=data["name"],
            arguments=data.get("arguments") or {},
            confirmation_required=data.get("confirmation_required", False),
            status=ToolCallStatus(data.get("status", ToolCallStatus.REQUESTED.value)),
            arguments_error=data.get("arguments_error"),
        )


@dataclass
class ToolResult:
    """
    Result of a tool execution

    Attributes:
        call_id: ID of the tool call this result is for
        output: JSON-serializable payload (or error payload)
        is_error: Whether execution failed
        error_code: One of ToolErrorCode values when is_error is True
    """
    call_id: str
    output: Any
    is_error: bool = False
    error_code: Optional[str] = None

    @classmethod
    def error(cls, call_id: str, code: ToolErrorCode, message: str) -> "ToolResult":
        return cls(
            call_id=call_id,
            output={"error": code.value, "message": message},
            is_error=True,
            error_code=code.value,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "call_id": self.call_id,
            "output": self.output,
            "is_error": self.is_error,
            "error_code": self.error_code,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolResult":
        return cls(
            call_id=data["call_id"],
            output=data.get("output"),
            is_error=data.get("is_error", False),
            error_code=data.get("error_code"),
        )
