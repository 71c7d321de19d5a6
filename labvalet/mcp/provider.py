"""
MCP Tool Provider - Bridge between MCP servers and the LabValet ToolRegistry

Remote tools are registered under their own names. Registration is
first-wins: a remote tool whose name is already taken (by a local tool or
another server) is skipped and the existing definition is kept.
"""

import json
import logging
from typing import Any, Dict, FrozenSet, List, Optional

from ..constants import CONFIRMATION_REQUIRED_TOOLS
from ..protocols import MCPClientProtocol
from ..tools.models import ToolCategory, ToolDefinition, ToolExecutionContext, ToolExecutionError
from ..tools.registry import ToolRegistry
from .models import MCPCallResult, MCPTool

logger = logging.getLogger(__name__)


def _decode_result(result: MCPCallResult) -> Any:
    """JSON payload of a call result when its text is JSON, else the text."""
    content = result.content
    if isinstance(content, (dict, list)) and not _is_content_list(content):
        return content
    text = result.text()
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return text


def _is_content_list(content: Any) -> bool:
    return isinstance(content, list) and all(
        isinstance(item, dict) and "type" in item for item in content
    )


class MCPToolProvider:
    """
    Registers one MCP server's tools into a ToolRegistry

    Example:
        client = HttpMCPClient(config)
        await client.connect()

        provider = MCPToolProvider(client, registry, confirm_tools=["addLabItem"])
        await provider.register_tools()
    """

    def __init__(
        self,
        client: MCPClientProtocol,
        registry: Optional[ToolRegistry] = None,
        confirm_tools: Optional[List[str]] = None,
        confirm_all: bool = False,
    ):
        self.client = client
        self.registry = registry or ToolRegistry.get_instance()
        self.confirm_all = confirm_all
        self.confirm_tools: FrozenSet[str] = frozenset(confirm_tools or ()) | CONFIRMATION_REQUIRED_TOOLS
        self._registered_tools: List[str] = []
        self._skipped_tools: List[str] = []

    def requires_confirmation(self, tool_name: str) -> bool:
        return self.confirm_all or tool_name in self.confirm_tools

    def _create_tool_executor(self, mcp_tool: MCPTool):
        """Wrap the client's call_tool as a registry executor."""
        client = self.client
        tool_name = mcp_tool.name

        async def executor(args: Dict[str, Any], context: ToolExecutionContext) -> Any:
            logger.debug(f"Executing MCP tool: {tool_name} with args: {args}")
            result = await client.call_tool(tool_name, args)
            if result.is_error:
                raise ToolExecutionError(f"MCP tool error: {result.error_message}")
            return _decode_result(result)

        return executor

    async def register_tools(self) -> List[str]:
        """
        Fetch tools from the server and register the ones whose names are free

        Returns:
            Names registered by this provider
        """
        if not self.client.is_connected:
            raise ConnectionError("MCP client not connected. Call client.connect() first.")

        mcp_tools = await self.client.list_tools()
        logger.info(f"Found {len(mcp_tools)} tools from MCP server: {self.client.server_name}")

        registered = []
        for mcp_tool in mcp_tools:
            tool_def = ToolDefinition(
                name=mcp_tool.name,
                description=f"[MCP:{self.client.server_name}] {mcp_tool.description}",
                parameters=mcp_tool.input_schema,
                executor=self._create_tool_executor(mcp_tool),
                confirmation_required=self.requires_confirmation(mcp_tool.name),
                category=ToolCategory.MCP,
            )
            if self.registry.register(tool_def):
                self._registered_tools.append(mcp_tool.name)
                registered.append(mcp_tool.name)
            else:
                self._skipped_tools.append(mcp_tool.name)

        logger.info(
            f"Registered {len(registered)} MCP tools from {self.client.server_name}"
            + (f" (kept existing: {', '.join(self._skipped_tools)})" if self._skipped_tools else "")
        )
        return registered

    async def unregister_tools(self) -> None:
        """Unregister the tools this provider registered (never shadowed ones)."""
        for tool_name in self._registered_tools:
            self.registry.unregister(tool_name)
        logger.info(f"Unregistered {len(self._registered_tools)} MCP tools from {self.client.server_name}")
        self._registered_tools = []
        self._skipped_tools = []

    def get_tool_names(self) -> List[str]:
        return list(self._registered_tools)

    def get_skipped_tool_names(self) -> List[str]:
        return list(self._skipped_tools)

    async def refresh_tools(self) -> List[str]:
        await self.unregister_tools()
        return await self.register_tools()

    def __repr__(self) -> str:
        return (
            f"MCPToolProvider(server='{self.client.server_name}', "
            f"tools={len(self._registered_tools)})"
        )


class MCPManager:
    """
    Manages multiple MCP server connections and their tools

    Example:
        manager = MCPManager(registry)
        await manager.add_server(HttpMCPClient(config), confirm_tools=config.confirm_tools)
        await manager.disconnect_all()
    """

    def __init__(self, registry: Optional[ToolRegistry] = None):
        self.registry = registry or ToolRegistry.get_instance()
        self._providers: Dict[str, MCPToolProvider] = {}

    async def add_server(
        self,
        client: MCPClientProtocol,
        confirm_tools: Optional[List[str]] = None,
        confirm_all: bool = False,
        connect: bool = True,
    ) -> MCPToolProvider:
        """Connect (if needed) and register a server's tools."""
        server_name = client.server_name

        if server_name in self._providers:
            logger.warning(f"Server {server_name} already added, replacing")
            await self.remove_server(server_name)

        if connect and not client.is_connected:
            await client.connect()

        provider = MCPToolProvider(client, self.registry, confirm_tools, confirm_all)
        await provider.register_tools()

        self._providers[server_name] = provider
        logger.info(f"Added MCP server: {server_name}")
        return provider

    async def remove_server(self, server_name: str) -> None:
        provider = self._providers.pop(server_name, None)
        if provider is None:
            logger.warning(f"Server {server_name} not found")
            return
        await provider.unregister_tools()
        await provider.client.disconnect()
        logger.info(f"Removed MCP server: {server_name}")

    def get_provider(self, server_name: str) -> Optional[MCPToolProvider]:
        return self._providers.get(server_name)

    def get_all_tool_names(self) -> List[str]:
        names = []
        for provider in self._providers.values():
            names.extend(provider.get_tool_names())
        return names

    async def disconnect_all(self) -> None:
        for server_name in list(self._providers.keys()):
            await self.remove_server(server_name)

    def __repr__(self) -> str:
        return f"MCPManager(servers={list(self._providers.keys())})"
