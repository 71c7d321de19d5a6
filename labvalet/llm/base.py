"""
LabValet LLM Client Base - Base class and common types for LLM clients

This module provides:
- BaseLLMClient: Abstract base class for the model client
- LLMConfig: Configuration dataclass
- LLMResponse: Standardized response format
- StreamChunk: Streaming chunk format
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from ..tools.models import ToolDefinition


class StopReason(str, Enum):
    """Reason why the LLM stopped generating"""
    END_TURN = "end_turn"           # Natural completion
    MAX_TOKENS = "max_tokens"       # Hit token limit
    STOP_SEQUENCE = "stop_sequence" # Hit stop sequence
    TOOL_USE = "tool_use"           # Model wants to use a tool
    CONTENT_FILTER = "content_filter"
    ERROR = "error"                 # Error occurred


@dataclass
class LLMConfig:
    """
    Configuration for LLM clients.

    Attributes:
        api_key: API key for the provider
        model: Model name (e.g., "gpt-4o-mini")
        base_url: Optional base URL override for API
        temperature: Sampling temperature (0.0 - 2.0)
        max_tokens: Maximum tokens in response
        timeout: Request timeout in seconds
        max_retries: Maximum number of retries on failure
    """
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 4096
    top_p: float = 1.0
    timeout: int = 60
    max_retries: int = 3

    # Cost tracking
    track_costs: bool = True

    # Extra provider-specific config
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
        }


@dataclass
class ToolCallRequest:
    """
    A tool call as emitted by the model.

    ``arguments_error`` is set when the provider returned arguments that
    were not valid JSON; ``arguments`` is then empty.
    """
    id: str
    name: str
    arguments: Dict[str, Any]
    arguments_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
        }


@dataclass
class Usage:
    """Token usage information"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    # Cost in USD (if available)
    cost: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "cost": self.cost,
        }


@dataclass
class LLMResponse:
    """Standardized non-streaming LLM response"""
    content: str
    tool_calls: Optional[List[ToolCallRequest]] = None
    stop_reason: StopReason = StopReason.END_TURN
    usage: Optional[Usage] = None
    model: Optional[str] = None

    # Raw response for debugging
    raw_response: Optional[Any] = None

    @property
    def has_tool_calls(self) -> bool:
        """Check if response contains tool calls"""
        return self.tool_calls is not None and len(self.tool_calls) > 0


@dataclass
class StreamChunk:
    """
    A chunk from streaming response.

    Text arrives as ``content`` deltas. Completed tool calls arrive on the
    chunk that carries ``is_final``.
    """
    content: str = ""
    tool_calls: Optional[List[ToolCallRequest]] = None
    is_final: bool = False
    stop_reason: Optional[StopReason] = None
    usage: Optional[Usage] = None

    # Accumulated content (all chunks so far)
    accumulated_content: str = ""


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM clients.

    Implements LLMClientProtocol. Subclasses provide ``_call_api`` and
    ``_stream_api``.
    """

    provider: str = "unknown"

    def __init__(self, config: Optional[LLMConfig] = None, **kwargs):
        """
        Initialize the client.

        Args:
            config: LLMConfig instance
            **kwargs: Override config values
        """
        if config is None:
            config = LLMConfig(**kwargs)
        else:
            for key, value in kwargs.items():
                if hasattr(config, key):
                    setattr(config, key, value)

        self.config = config

    @abstractmethod
    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> LLMResponse:
        """Make the actual API call (provider-specific)."""
        pass

    @abstractmethod
    async def _stream_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> AsyncIterator[StreamChunk]:
        """Make streaming API call (provider-specific)."""
        pass

    def _format_tools(
        self, tools: Optional[List[Union[Dict[str, Any], ToolDefinition]]]
    ) -> Optional[List[Dict[str, Any]]]:
        if not tools:
            return None
        schemas = []
        for tool in tools:
            if isinstance(tool, ToolDefinition):
                schemas.append(tool.to_openai_schema())
            else:
                schemas.append(tool)
        return schemas

    def _model_params(self, **kwargs) -> Dict[str, Any]:
        """Sampling parameters, with per-call overrides."""
        return {
            "temperature": kwargs.get("temperature", self.config.temperature),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "top_p": kwargs.get("top_p", self.config.top_p),
        }

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Union[Dict[str, Any], ToolDefinition]]] = None,
        config: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Example:
            response = await client.chat_completion([
                {"role": "user", "content": "Hello!"}
            ])
            print(response.content)
        """
        merged_kwargs = {**kwargs}
        if config:
            merged_kwargs.update(config)
        return await self._call_api(messages, self._format_tools(tools), **merged_kwargs)

    async def stream_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Union[Dict[str, Any], ToolDefinition]]] = None,
        config: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> AsyncIterator[StreamChunk]:
        """
        Send a streaming chat completion request.

        Example:
            async for chunk in client.stream_completion(messages):
                print(chunk.content, end="", flush=True)
        """
        merged_kwargs = {**kwargs}
        if config:
            merged_kwargs.update(config)

        accumulated = ""
        async for chunk in self._stream_api(messages, self._format_tools(tools), **merged_kwargs):
            accumulated += chunk.content
            chunk.accumulated_content = accumulated
            yield chunk

    async def close(self) -> None:
        """Release resources"""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
