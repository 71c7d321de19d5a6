"""
LabValet Application - Single entry point for the schedule assistant.

Usage:
    from labvalet import LabValet

    app = LabValet("config.yaml")

    # Stream a round
    stream = await app.handle_message("default", "Add Lab 15 to Notion")
    async for event in stream:
        ...

    # Or just get the text
    reply = await app.chat("default", "What labs are due this week?")
"""

import logging
import os
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import yaml

from .constants import (
    DEFAULT_MAX_STEPS,
    DEFAULT_SLACK_CONVERSATION,
    DEFAULT_TIMEZONE,
    DEFAULT_TOOL_TIMEOUT,
    SLACK_RELAY_TEMPLATE,
    SOURCE_API,
    SOURCE_SLACK,
)
from .message import Message, Role
from .streaming.stream import ResponseStream
from .triggers.models import ScheduledTask

logger = logging.getLogger(__name__)

_ENV_VAR = re.compile(r"\$\{(\w+)\}")


def _load_config(path: str) -> dict:
    """Read YAML config file with ${VAR} environment variable substitution."""
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()
    return _parse_config(raw, source=path)


def _parse_config(raw: str, source: str = "<string>") -> dict:
    # Replace ${VAR} with environment variable values
    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{source}')"
            )
        return value

    resolved = _ENV_VAR.sub(_replace_env, raw)
    return yaml.safe_load(resolved) or {}


def _section(cfg: dict, name: str) -> dict:
    value = cfg.get(name)
    return value if isinstance(value, dict) else {}


class LabValet:
    """
    LabValet Application entry point.

    Wraps the assistant behind a simple interface. The sync constructor
    reads and validates config; async initialization is deferred to the
    first call that needs it.

    Args:
        config: Path to a YAML configuration file, or an already-parsed dict.

    Example:
        app = LabValet("config.yaml")
        reply = await app.chat("default", "Schedule a reminder for Lab 15 tomorrow at 9am")
    """

    def __init__(self, config: Union[str, Dict[str, Any]]):
        self._config = _load_config(config) if isinstance(config, str) else dict(config)
        self._initialized = False

        llm_cfg = _section(self._config, "llm")
        if not llm_cfg.get("model"):
            raise ValueError("Missing required config field: 'llm.model'")

        self.timezone = self._config.get("timezone") or DEFAULT_TIMEZONE

        # Will be set during lazy initialization
        self._llm_client = None
        self._registry = None
        self._orchestrator = None
        self._merger = None
        self._store = None
        self._pool = None
        self._scheduler = None
        self._mcp_manager = None

    @property
    def config(self) -> dict:
        """Return a copy of the raw configuration dict."""
        return dict(self._config)

    @property
    def slack_conversation_id(self) -> str:
        return _section(self._config, "slack").get("conversation_id") or DEFAULT_SLACK_CONVERSATION

    async def _ensure_initialized(self) -> None:
        """Lazy initialization: runs once on first use."""
        if self._initialized:
            return

        cfg = self._config
        llm_cfg = _section(cfg, "llm")
        provider = llm_cfg.get("provider", "openai")
        model = llm_cfg["model"]

        # 1. LLM client
        from .llm.base import LLMConfig
        from .llm.litellm_client import LiteLLMClient
        llm_config = LLMConfig(
            model=model,
            api_key=llm_cfg.get("api_key"),
            base_url=llm_cfg.get("base_url"),
            temperature=float(llm_cfg.get("temperature", 0.7)),
            max_tokens=int(llm_cfg.get("max_tokens", 4096)),
        )
        self._llm_client = LiteLLMClient(config=llm_config, provider_name=provider)
        logger.info(f"LLM client: provider={provider}, model={model}")

        # 2. Normalizer + extractor (the normalizer may use a cheaper model)
        from .extraction import CanonicalTextNormalizer, ScheduleExtractor
        norm_cfg = _section(cfg, "normalizer")
        normalizer = None
        if norm_cfg.get("enabled", True):
            norm_client = self._llm_client
            if norm_cfg.get("model"):
                norm_client = LiteLLMClient(
                    config=LLMConfig(
                        model=norm_cfg["model"],
                        api_key=norm_cfg.get("api_key", llm_cfg.get("api_key")),
                        base_url=norm_cfg.get("base_url", llm_cfg.get("base_url")),
                    ),
                    provider_name=norm_cfg.get("provider", provider),
                )
            normalizer = CanonicalTextNormalizer(
                norm_client,
                timezone_name=self.timezone,
                temperature=float(norm_cfg.get("temperature", 0.0)),
                max_tokens=int(norm_cfg.get("max_tokens", 512)),
            )
        extractor = ScheduleExtractor(normalizer, timezone_name=self.timezone)

        # 3. Tool registry + orchestrator
        from .orchestrator import AuditLogger, ToolOrchestrator
        from .tools import ToolExecutor, ToolRegistry
        round_cfg = _section(cfg, "round")
        self._registry = ToolRegistry()
        executor = ToolExecutor(
            self._registry,
            timeout=float(round_cfg.get("tool_timeout", DEFAULT_TOOL_TIMEOUT)),
        )
        self._orchestrator = ToolOrchestrator(self._registry, executor, AuditLogger())

        # 4. Scheduler
        from .triggers import TaskScheduler, TaskStore
        sched_cfg = _section(cfg, "scheduler")
        task_store = TaskStore(store_path=sched_cfg.get("store", "~/.labvalet/tasks.json"))
        self._scheduler = TaskScheduler(
            task_store,
            callback=self._on_task_fired,
            check_interval=float(sched_cfg.get("check_interval", 10)),
            timezone_name=self.timezone,
        )

        # 5. Builtin tools (registered before MCP so local names win)
        from .builtin_tools import (
            register_google_docs_tools,
            register_lab_tools,
            register_notion_tools,
            register_scheduling_tools,
        )
        from .clients import GoogleDocsClient, NotionClient
        notion_cfg = _section(cfg, "notion")
        google_cfg = _section(cfg, "google")
        register_lab_tools(self._registry, extractor)
        register_notion_tools(
            self._registry,
            NotionClient(token=notion_cfg.get("api_key")),
            labs_page_id=notion_cfg.get("labs_page_id"),
            schedule_database_id=notion_cfg.get("schedule_database_id"),
            timezone_name=self.timezone,
        )
        register_google_docs_tools(self._registry, GoogleDocsClient(access_token=google_cfg.get("access_token")))
        register_scheduling_tools(self._registry, self._scheduler, timezone_name=self.timezone)

        # 6. MCP servers
        from .mcp import HttpMCPClient, MCPManager, MCPServerConfig
        self._mcp_manager = MCPManager(self._registry)
        for server_cfg in _section(cfg, "mcp").get("servers") or []:
            server = MCPServerConfig.from_dict(server_cfg)
            if not server.enabled:
                continue
            try:
                await self._mcp_manager.add_server(
                    HttpMCPClient(server),
                    confirm_tools=server.confirm_tools,
                    confirm_all=server.confirm_all,
                )
            except ConnectionError as e:
                logger.warning(f"Skipping MCP server '{server.name}': {e}")

        # 7. Extra confirmation policy
        for name in _section(cfg, "confirmation").get("tools") or []:
            tool = self._registry.get_tool(name)
            if tool is None:
                logger.warning(f"confirmation.tools names unknown tool '{name}'")
                continue
            tool.confirmation_required = True

        # 8. Conversations
        from .agent import ConversationAgent, ConversationPool, JsonFileConversationStore, MemoryConversationStore
        from .streaming.merger import RoundConfig, StreamMerger
        storage_cfg = _section(cfg, "storage")
        if storage_cfg.get("backend", "json") == "memory":
            self._store = MemoryConversationStore()
        else:
            self._store = JsonFileConversationStore(
                storage_cfg.get("directory", "~/.labvalet/conversations")
            )
        self._merger = StreamMerger(
            self._llm_client,
            self._orchestrator,
            RoundConfig(
                max_steps=int(round_cfg.get("max_steps", DEFAULT_MAX_STEPS)),
                timezone=self.timezone,
                system_prompt=round_cfg.get("system_prompt"),
            ),
        )
        context_metadata = {"timezone": self.timezone}
        self._pool = ConversationPool(
            self._store,
            lambda conversation: ConversationAgent(
                conversation, self._store, self._orchestrator, self._merger, context_metadata,
            ),
        )

        if sched_cfg.get("enabled", True):
            await self._scheduler.start()
        else:
            await task_store.load()

        self._initialized = True
        logger.info(f"LabValet initialized with {len(self._registry)} tools")

    async def _on_task_fired(self, task: ScheduledTask) -> None:
        agent = await self._pool.get(task.conversation_id)
        stream = await agent.handle_scheduled_trigger(task)
        await stream.wait_closed()
        if stream.error is not None:
            logger.warning(f"Round for scheduled task {task.id} ended with error: {stream.error}")

    # ── Conversations ──

    async def handle_message(
        self,
        conversation_id: str,
        text: str,
        source: Optional[str] = SOURCE_API,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ResponseStream:
        """Send a user message and return the round's event stream."""
        await self._ensure_initialized()
        agent = await self._pool.get(conversation_id)
        message = Message.text(Role.USER, text, source=source, **(metadata or {}))
        return await agent.handle_inbound_message(message)

    async def chat(self, conversation_id: str, text: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """Send a user message and return the full reply text."""
        stream = await self.handle_message(conversation_id, text, metadata=metadata)
        return await stream.text()

    async def inject_message(self, conversation_id: str, message: Union[Message, Dict[str, Any]]) -> Message:
        """Append a message to history without running the model."""
        await self._ensure_initialized()
        agent = await self._pool.get(conversation_id)
        return await agent.handle_direct_injection(message)

    async def relay_slack_message(self, text: str) -> Message:
        """Relay a Slack message into the automation conversation."""
        message = Message.text(Role.USER, SLACK_RELAY_TEMPLATE.format(text=text), source=SOURCE_SLACK)
        return await self.inject_message(self.slack_conversation_id, message)

    async def get_history(self, conversation_id: str) -> List[Message]:
        await self._ensure_initialized()
        agent = await self._pool.get(conversation_id)
        return await agent.get_history()

    async def list_tools(self) -> List[Dict[str, Any]]:
        await self._ensure_initialized()
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "category": tool.category.value,
                "confirmation_required": tool.confirmation_required,
            }
            for tool in self._registry.list_tools()
        ]

    # ── Scheduled tasks ──

    async def schedule_task(
        self,
        conversation_id: str,
        description: str,
        trigger_time: Optional[datetime] = None,
        delay_seconds: Optional[float] = None,
    ) -> ScheduledTask:
        await self._ensure_initialized()
        return await self._scheduler.schedule(
            conversation_id, description, trigger_time=trigger_time, delay_seconds=delay_seconds,
        )

    async def list_tasks(self, conversation_id: Optional[str] = None) -> List[ScheduledTask]:
        await self._ensure_initialized()
        return self._scheduler.list_tasks(conversation_id)

    async def cancel_task(self, task_id: str) -> bool:
        await self._ensure_initialized()
        return await self._scheduler.cancel(task_id)

    async def shutdown(self) -> None:
        """Shut down the application, stopping agents and connections."""
        if not self._initialized:
            return
        try:
            if self._scheduler:
                await self._scheduler.stop()
            if self._pool:
                await self._pool.shutdown()
            if self._mcp_manager:
                await self._mcp_manager.disconnect_all()
        except Exception as e:
            logger.warning(f"Error during shutdown: {e}")
        finally:
            self._initialized = False
            self._llm_client = None
            self._registry = None
            self._orchestrator = None
            self._merger = None
            self._store = None
            self._pool = None
            self._scheduler = None
            self._mcp_manager = None
            logger.info("LabValet shut down")
