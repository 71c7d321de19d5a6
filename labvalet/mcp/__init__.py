"""
LabValet MCP Module

Discovers tools from remote MCP servers and registers them into a
ToolRegistry with a per-server confirmation policy.
"""

from .client import HttpMCPClient, MCPClient, MockMCPClient
from .models import MCPCallResult, MCPError, MCPServerConfig, MCPTool
from .provider import MCPManager, MCPToolProvider

__all__ = [
    "HttpMCPClient",
    "MCPClient",
    "MockMCPClient",
    "MCPCallResult",
    "MCPError",
    "MCPServerConfig",
    "MCPTool",
    "MCPManager",
    "MCPToolProvider",
]
