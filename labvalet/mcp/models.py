"""
MCP Models - Data structures for remote MCP tool servers
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class MCPError(Exception):
    """Transport or tool failure talking to an MCP server."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


@dataclass
class MCPServerConfig:
    """
    Connection settings for one MCP server

    Attributes:
        name: Server name used in logs
        url: Server endpoint; a path ending in /sse selects the SSE transport
        transport: "auto", "streamable_http" or "sse"
        headers: Extra HTTP headers (e.g. Authorization)
        timeout: Per-request timeout in seconds
        confirm_tools: Remote tool names that need user approval
        confirm_all: Require approval for every tool of this server
    """
    name: str
    url: str = ""
    transport: str = "auto"
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0
    confirm_tools: List[str] = field(default_factory=list)
    confirm_all: bool = False
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MCPServerConfig":
        return cls(
            name=data["name"],
            url=data.get("url", ""),
            transport=data.get("transport", "auto"),
            headers=dict(data.get("headers") or {}),
            timeout=float(data.get("timeout", 30.0)),
            confirm_tools=list(data.get("confirm_tools") or []),
            confirm_all=bool(data.get("confirm_all", False)),
            enabled=bool(data.get("enabled", True)),
        )


@dataclass
class MCPTool:
    """A tool advertised by an MCP server"""
    name: str
    description: str
    input_schema: Dict[str, Any]
    server_name: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any], server_name: str) -> "MCPTool":
        return cls(
            name=data["name"],
            description=data.get("description") or "",
            input_schema=data.get("inputSchema") or {"type": "object", "properties": {}},
            server_name=server_name,
        )


@dataclass
class MCPCallResult:
    """Result of a tools/call request"""
    content: Any
    is_error: bool = False
    error_message: Optional[str] = None

    def text(self) -> str:
        """Concatenated text items of an MCP content list."""
        content = self.content
        if isinstance(content, dict):
            content = content.get("content", content)
        if isinstance(content, list):
            return "\n".join(
                item.get("text", "") for item in content
                if isinstance(item, dict) and item.get("type") == "text"
            )
        if content is None:
            return ""
        return content if isinstance(content, str) else str(content)
