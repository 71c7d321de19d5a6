"""
LabValet Tool Registry - Central registry for all available tools

Local tools and tools discovered from MCP servers share one registry keyed by
name. The first registration of a name wins; later ones are ignored.
"""

import logging
import threading
from typing import Dict, List, Optional

from .models import ToolDefinition

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry for managing available tools

    Usage:
        registry = ToolRegistry()
        registry.register(tool_definition)
        schemas = registry.get_tools_schema()

    A process-wide default is available through ``get_instance()``.
    """

    _instance: Optional["ToolRegistry"] = None
    _lock: threading.Lock = threading.Lock()

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}

    @classmethod
    def get_instance(cls) -> "ToolRegistry":
        """Get the default instance"""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset the default instance (for testing)"""
        with cls._lock:
            cls._instance = None

    def register(self, tool: ToolDefinition) -> bool:
        """
        Register a tool definition

        Args:
            tool: ToolDefinition to register

        Returns:
            True if the tool was added, False if the name was already taken
        """
        if tool.name in self._tools:
            logger.info(f"Tool '{tool.name}' already registered, keeping the first definition")
            return False

        self._tools[tool.name] = tool
        logger.info(
            f"Registered tool: {tool.name} ({tool.category.value}, "
            f"confirmation={'required' if tool.confirmation_required else 'auto'})"
        )
        return True

    def unregister(self, name: str) -> bool:
        """
        Unregister a tool by name

        Returns:
            True if tool was unregistered, False if not found
        """
        if name in self._tools:
            del self._tools[name]
            logger.info(f"Unregistered tool: {name}")
            return True
        return False

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        """Get a tool definition by name, or None"""
        return self._tools.get(name)

    def get_tools(self, names: List[str]) -> List[ToolDefinition]:
        """Get multiple tool definitions by name (skips unknown tools)"""
        tools = []
        for name in names:
            tool = self._tools.get(name)
            if tool:
                tools.append(tool)
            else:
                logger.warning(f"Unknown tool requested: {name}")
        return tools

    def list_tools(self) -> List[ToolDefinition]:
        """All registered tools in registration order"""
        return list(self._tools.values())

    def get_tools_schema(self, names: Optional[List[str]] = None) -> List[Dict]:
        """
        Get OpenAI-format tool schemas

        Args:
            names: Tool names to include (all tools when omitted)
        """
        tools = self.list_tools() if names is None else self.get_tools(names)
        return [tool.to_openai_schema() for tool in tools]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
