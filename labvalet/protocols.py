"""
LabValet Protocols - Abstract interfaces for the external collaborators

These protocols define the contracts that the model client, the text
normalizer and the conversation store must fulfill.
"""

from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class LLMClientProtocol(Protocol):
    """
    Model invocation contract

    ``stream_completion`` yields chunks with ``content`` text deltas and, on
    the final chunk, ``tool_calls``. ``chat_completion`` returns an object
    with ``content``.
    """

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict]] = None,
        config: Optional[Dict[str, Any]] = None
    ) -> Any:
        ...

    def stream_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict]] = None,
        config: Optional[Dict[str, Any]] = None
    ) -> AsyncIterator[Any]:
        ...


@runtime_checkable
class NormalizerProtocol(Protocol):
    """Rewrites free text into the canonical lab grammar (may fail)."""

    async def normalize(self, text: str) -> str:
        ...


@runtime_checkable
class ConversationStoreProtocol(Protocol):
    """Persists whole conversation snapshots."""

    async def load(self, conversation_id: str) -> Any:
        """Return the stored Conversation, or None"""
        ...

    async def save(self, conversation: Any) -> None:
        ...


@runtime_checkable
class MCPClientProtocol(Protocol):
    """Connection to one MCP server."""

    @property
    def server_name(self) -> str:
        ...

    @property
    def is_connected(self) -> bool:
        ...

    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def list_tools(self) -> List[Any]:
        ...

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Any:
        ...
