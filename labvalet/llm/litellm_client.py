"""
LabValet LiteLLM Client - Model client powered by litellm

One client covers every provider litellm routes to (OpenAI, Anthropic,
Azure, Gemini, Ollama, OpenAI-compatible endpoints such as Workers AI).
"""

import json
import logging
import os
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from .base import (
    BaseLLMClient,
    LLMConfig,
    LLMResponse,
    StopReason,
    StreamChunk,
    ToolCallRequest,
    Usage,
)

logger = logging.getLogger(__name__)

# Provider -> default environment variable for API key
_PROVIDER_ENV_VARS: Dict[str, Optional[str]] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
    "gemini": "GOOGLE_API_KEY",
    "ollama": None,
}


def build_litellm_model_string(provider: str, model: str) -> str:
    """Map provider + model to the litellm model string.

    litellm uses prefixed model strings to route to the correct provider.
    See https://docs.litellm.ai/docs/providers
    """
    provider = provider.lower()
    if provider == "openai":
        return model  # no prefix needed
    if provider in ("anthropic", "azure", "gemini", "ollama"):
        return f"{provider}/{model}"
    if provider == "openai_compatible":
        return f"openai/{model}"
    # Fallback: pass through as-is
    return model


def parse_tool_arguments(raw: Any) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Parse provider tool-call arguments.

    Returns:
        (arguments, error). ``error`` is set when the raw arguments are
        not a JSON object.
    """
    if isinstance(raw, dict):
        return raw, None
    if raw is None or raw == "":
        return {}, None
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        return {}, str(e)
    if not isinstance(parsed, dict):
        return {}, f"expected a JSON object, got {type(parsed).__name__}"
    return parsed, None


class LiteLLMClient(BaseLLMClient):
    """
    Model client powered by litellm.

    Example:
        config = LLMConfig(model="gpt-4o-mini", api_key="sk-xxx")
        client = LiteLLMClient(config=config, provider_name="openai")
        async for chunk in client.stream_completion(messages, tools=schemas):
            ...
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        provider_name: str = "openai",
        **kwargs,
    ):
        if config is None:
            if "model" not in kwargs:
                raise ValueError("model is required")
            model = kwargs.pop("model")
            config = LLMConfig(model=model, **kwargs)
            kwargs = {}

        super().__init__(config, **kwargs)

        self.provider = provider_name.lower()
        self._litellm_model = build_litellm_model_string(self.provider, self.config.model)

        # Resolve API key: explicit config > env var
        api_key = self.config.api_key
        if not api_key:
            env_var = _PROVIDER_ENV_VARS.get(self.provider)
            if env_var:
                api_key = os.environ.get(env_var)

        self._base_kwargs: Dict[str, Any] = {
            "timeout": self.config.timeout,
            "num_retries": self.config.max_retries,
        }
        if self.config.base_url:
            self._base_kwargs["api_base"] = self.config.base_url
        if api_key:
            self._base_kwargs["api_key"] = api_key

        logger.info(
            f"LiteLLMClient initialized: provider={self.provider}, "
            f"litellm_model={self._litellm_model}"
        )

    def _params(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]],
        **kwargs,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": kwargs.get("model") or self._litellm_model,
            "messages": messages,
            **self._model_params(**kwargs),
            **self._base_kwargs,
        }
        if tools:
            params["tools"] = tools
            params["tool_choice"] = kwargs.get("tool_choice", "auto")
        if "stop" in kwargs:
            params["stop"] = kwargs["stop"]
        return params

    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs,
    ) -> LLMResponse:
        """Make a non-streaming call via litellm.acompletion."""
        import litellm

        params = self._params(messages, tools, **kwargs)
        logger.debug(
            f"[LiteLLM] model={params['model']}, tools={len(tools) if tools else 0}, "
            f"messages={len(messages)}"
        )

        response = await litellm.acompletion(**params)

        choice = response.choices[0]
        message = choice.message

        tool_calls = None
        if message.tool_calls:
            tool_calls = []
            for tc in message.tool_calls:
                arguments, error = parse_tool_arguments(tc.function.arguments)
                tool_calls.append(ToolCallRequest(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=arguments,
                    arguments_error=error,
                ))

        usage = None
        if getattr(response, "usage", None):
            usage = Usage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
            if self.config.track_costs:
                try:
                    usage.cost = litellm.completion_cost(completion_response=response)
                except Exception:
                    logger.debug("Cost lookup unavailable for this model")

        return LLMResponse(
            content=message.content or "",
            tool_calls=tool_calls,
            stop_reason=self._parse_stop_reason(choice.finish_reason),
            usage=usage,
            model=getattr(response, "model", self.config.model),
            raw_response=response,
        )

    async def _stream_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs,
    ) -> AsyncIterator[StreamChunk]:
        """Make a streaming call via litellm.acompletion(stream=True)."""
        import litellm

        params = self._params(messages, tools, **kwargs)
        params["stream"] = True
        params["stream_options"] = {"include_usage": True}

        response = await litellm.acompletion(**params)

        # Track tool call deltas across chunks
        tool_call_deltas: Dict[int, Dict[str, Any]] = {}

        async for chunk in response:
            if not chunk.choices:
                # Final chunk may carry only usage
                usage = getattr(chunk, "usage", None)
                if usage:
                    yield StreamChunk(
                        content="",
                        is_final=True,
                        usage=Usage(
                            prompt_tokens=usage.prompt_tokens,
                            completion_tokens=usage.completion_tokens,
                            total_tokens=usage.total_tokens,
                        ),
                    )
                continue

            choice = chunk.choices[0]
            delta = choice.delta

            content = delta.content or ""

            # Accumulate tool call deltas
            tool_calls = None
            if delta.tool_calls:
                for tc_delta in delta.tool_calls:
                    idx = tc_delta.index
                    if idx not in tool_call_deltas:
                        tool_call_deltas[idx] = {"id": "", "name": "", "arguments": ""}
                    if tc_delta.id:
                        tool_call_deltas[idx]["id"] = tc_delta.id
                    if tc_delta.function:
                        if tc_delta.function.name:
                            tool_call_deltas[idx]["name"] = tc_delta.function.name
                        if tc_delta.function.arguments:
                            tool_call_deltas[idx]["arguments"] += tc_delta.function.arguments

            is_final = choice.finish_reason is not None
            stop_reason = None
            if is_final:
                stop_reason = self._parse_stop_reason(choice.finish_reason)
                if tool_call_deltas:
                    tool_calls = []
                    for idx in sorted(tool_call_deltas.keys()):
                        tc = tool_call_deltas[idx]
                        arguments, error = parse_tool_arguments(tc["arguments"])
                        tool_calls.append(ToolCallRequest(
                            id=tc["id"],
                            name=tc["name"],
                            arguments=arguments,
                            arguments_error=error,
                        ))
                    tool_call_deltas = {}

            yield StreamChunk(
                content=content,
                tool_calls=tool_calls,
                is_final=is_final,
                stop_reason=stop_reason,
            )

    @staticmethod
    def _parse_stop_reason(finish_reason: Optional[str]) -> StopReason:
        """Map litellm/OpenAI finish_reason to StopReason enum."""
        if finish_reason is None:
            return StopReason.END_TURN
        mapping = {
            "stop": StopReason.END_TURN,
            "end_turn": StopReason.END_TURN,
            "length": StopReason.MAX_TOKENS,
            "max_tokens": StopReason.MAX_TOKENS,
            "tool_calls": StopReason.TOOL_USE,
            "tool_use": StopReason.TOOL_USE,
            "function_call": StopReason.TOOL_USE,
            "content_filter": StopReason.CONTENT_FILTER,
            "stop_sequence": StopReason.STOP_SEQUENCE,
        }
        return mapping.get(finish_reason, StopReason.END_TURN)
