"""
MCP Client - Connections to remote MCP tool servers

MCPClient holds the connection lifecycle and tool cache; subclasses
provide the session:

    - HttpMCPClient: official MCP SDK ``ClientSession`` over the streamable
      HTTP transport, or the legacy SSE transport for ``.../sse`` endpoints
    - MockMCPClient: in-process tools for tests
"""

import asyncio
import logging
from datetime import timedelta
from typing import Any, AsyncContextManager, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.exceptions import McpError

from .models import MCPCallResult, MCPError, MCPServerConfig, MCPTool

logger = logging.getLogger(__name__)

TransportFactory = Callable[[], AsyncContextManager[Tuple[Any, ...]]]


class MCPClient:
    """
    Base MCP client

    Example:
        client = HttpMCPClient(MCPServerConfig(name="notion-labs", url="https://.../mcp"))
        await client.connect()

        tools = await client.list_tools()
        result = await client.call_tool("addLabItem", {"title": "Lab 15"})

        await client.disconnect()
    """

    def __init__(self, config: MCPServerConfig):
        self.config = config
        self._connected = False
        self._tools: List[MCPTool] = []

    @property
    def server_name(self) -> str:
        return self.config.name

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Open the transport and discover tools."""
        if self._connected:
            logger.warning(f"Already connected to {self.server_name}")
            return

        logger.info(f"Connecting to MCP server: {self.server_name}")
        try:
            await self._open()
        except Exception as e:
            logger.error(f"Failed to connect to MCP server {self.server_name}: {e}")
            await self._close()
            raise ConnectionError(f"MCP connection failed: {e}") from e

        self._connected = True
        logger.info(f"Connected to MCP server: {self.server_name}")

        try:
            self._tools = await self._fetch_tools()
            logger.info(f"Discovered {len(self._tools)} tools from {self.server_name}")
        except Exception as e:
            logger.warning(f"Failed to discover tools from {self.server_name}: {e}")
            self._tools = []

    async def _open(self) -> None:
        raise NotImplementedError("Subclasses must implement _open()")

    async def _close(self) -> None:
        return None

    async def _fetch_tools(self) -> List[MCPTool]:
        return []

    async def _execute_tool(self, name: str, arguments: Dict[str, Any]) -> Any:
        raise NotImplementedError("Subclasses must implement _execute_tool()")

    async def disconnect(self) -> None:
        if not self._connected:
            return
        logger.info(f"Disconnecting from MCP server: {self.server_name}")
        self._connected = False
        self._tools = []
        await self._close()

    async def list_tools(self) -> List[MCPTool]:
        if not self._connected:
            raise ConnectionError("Not connected to MCP server")
        return self._tools

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> MCPCallResult:
        """
        Call a tool on the MCP server

        Returns:
            MCPCallResult; transport and server errors are reported in it
        """
        if not self._connected:
            raise ConnectionError("Not connected to MCP server")

        tool = next((t for t in self._tools if t.name == name), None)
        if not tool:
            return MCPCallResult(content=None, is_error=True, error_message=f"Unknown tool: {name}")

        try:
            result = await self._execute_tool(name, arguments)
            return MCPCallResult(content=result)
        except (MCPError, McpError) as e:
            logger.error(f"Tool execution failed: {name} - {e}")
            return MCPCallResult(content=None, is_error=True, error_message=str(e))

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"{type(self).__name__}(server='{self.server_name}', status={status})"


class HttpMCPClient(MCPClient):
    """
    MCP client built on the MCP SDK's ClientSession.

    The transport follows the URL: an endpoint ending in ``/sse`` uses the
    SSE transport, anything else streamable HTTP. ``config.transport``
    forces one of them. The session lives in its own task, so connect() and
    disconnect() may be called from different tasks.
    """

    def __init__(
        self,
        config: MCPServerConfig,
        transport_factory: Optional[TransportFactory] = None,
    ):
        super().__init__(config)
        self._transport_factory = transport_factory
        self._session: Optional[ClientSession] = None
        self._runner: Optional[asyncio.Task] = None
        self._ready: Optional[asyncio.Future] = None
        self._stop: Optional[asyncio.Event] = None

    @property
    def transport_kind(self) -> str:
        """"sse" or "streamable_http"."""
        kind = (self.config.transport or "auto").lower()
        if kind != "auto":
            return kind
        path = urlparse(self.config.url).path.rstrip("/")
        return "sse" if path.endswith("/sse") else "streamable_http"

    def _open_transport(self) -> AsyncContextManager[Tuple[Any, ...]]:
        if self._transport_factory is not None:
            return self._transport_factory()
        headers = self.config.headers or None
        if self.transport_kind == "sse":
            return sse_client(self.config.url, headers=headers, timeout=self.config.timeout)
        return streamablehttp_client(self.config.url, headers=headers, timeout=self.config.timeout)

    async def _open(self) -> None:
        if not self.config.url and self._transport_factory is None:
            raise MCPError(f"No url configured for MCP server {self.server_name}")

        self._ready = asyncio.get_running_loop().create_future()
        self._stop = asyncio.Event()
        self._runner = asyncio.create_task(self._run_session())

        done, _ = await asyncio.wait({self._ready}, timeout=self.config.timeout)
        if not done:
            self._ready.cancel()
            raise MCPError(f"Timed out after {self.config.timeout}s initializing {self.server_name}")
        self._ready.result()

    async def _run_session(self) -> None:
        try:
            async with self._open_transport() as streams:
                read_stream, write_stream = streams[0], streams[1]
                async with ClientSession(
                    read_stream,
                    write_stream,
                    read_timeout_seconds=timedelta(seconds=self.config.timeout),
                ) as session:
                    init = await session.initialize()
                    logger.debug(
                        f"MCP server {self.server_name} initialized: {init.serverInfo.name} "
                        f"(protocol {init.protocolVersion}, transport {self.transport_kind})"
                    )
                    self._session = session
                    self._ready.set_result(None)
                    await self._stop.wait()
        except Exception as e:
            if not self._ready.done():
                self._ready.set_exception(e)
            else:
                logger.error(f"MCP session with {self.server_name} ended: {e}", exc_info=True)
        finally:
            self._session = None

    async def _close(self) -> None:
        runner, self._runner = self._runner, None
        if runner is None:
            return
        self._stop.set()
        done, _ = await asyncio.wait({runner}, timeout=self.config.timeout)
        if not done:
            logger.warning(f"MCP session with {self.server_name} did not close in time; cancelling")
            runner.cancel()
            await asyncio.wait({runner})

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise MCPError(f"MCP session with {self.server_name} is closed")
        return self._session

    async def _fetch_tools(self) -> List[MCPTool]:
        session = self._require_session()
        tools: List[MCPTool] = []
        cursor: Optional[str] = None
        while True:
            result = await session.list_tools(cursor=cursor) if cursor else await session.list_tools()
            for tool in result.tools:
                tools.append(MCPTool.from_dict(tool.model_dump(), self.server_name))
            cursor = result.nextCursor
            if not cursor:
                return tools

    async def _execute_tool(self, name: str, arguments: Dict[str, Any]) -> Any:
        result = await self._require_session().call_tool(name, arguments)
        content = [item.model_dump(mode="json", exclude_none=True) for item in result.content]
        if result.isError:
            raise MCPError(MCPCallResult(content=content).text() or f"MCP tool {name} failed")
        structured = getattr(result, "structuredContent", None)
        if structured is not None:
            return structured
        return content


class MockMCPClient(MCPClient):
    """
    Mock MCP client for testing

    Example:
        client = MockMCPClient(
            name="test-server",
            tools=[MCPTool(name="echo", description="Echo input",
                           input_schema={"type": "object"}, server_name="test-server")],
        )
        await client.connect()
    """

    def __init__(
        self,
        name: str = "mock-server",
        tools: Optional[List[MCPTool]] = None,
        tool_handler: Optional[Callable[[str, Dict[str, Any]], Awaitable[Any]]] = None,
        confirm_tools: Optional[List[str]] = None,
    ):
        super().__init__(MCPServerConfig(name=name, confirm_tools=confirm_tools or []))
        self._mock_tools = tools or []
        self._tool_handler = tool_handler
        self.calls: List[Dict[str, Any]] = []

    async def _open(self) -> None:
        return None

    async def _fetch_tools(self) -> List[MCPTool]:
        return list(self._mock_tools)

    async def _execute_tool(self, name: str, arguments: Dict[str, Any]) -> Any:
        self.calls.append({"name": name, "arguments": arguments})
        if self._tool_handler:
            return await self._tool_handler(name, arguments)
        return [{"type": "text", "text": f"Mock result for {name}"}]
