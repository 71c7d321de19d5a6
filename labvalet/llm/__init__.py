"""
LabValet LLM - Model client used for chat rounds and text normalization

    from labvalet.llm import LiteLLMClient, LLMConfig

    client = LiteLLMClient(LLMConfig(model="gpt-4o-mini"), provider_name="openai")
"""

from .base import (
    BaseLLMClient,
    LLMConfig,
    LLMResponse,
    StopReason,
    StreamChunk,
    ToolCallRequest,
    Usage,
)
from .litellm_client import LiteLLMClient, build_litellm_model_string

__all__ = [
    "BaseLLMClient",
    "LLMConfig",
    "LLMResponse",
    "StopReason",
    "StreamChunk",
    "ToolCallRequest",
    "Usage",
    "LiteLLMClient",
    "build_litellm_model_string",
]
