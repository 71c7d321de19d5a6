"""
ConversationPool - One ConversationAgent per conversation id

Agents are created lazily: the first request for an id loads the stored
history (or starts an empty conversation) and wraps it in an agent.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from ..message import Conversation
from ..protocols import ConversationStoreProtocol
from .conversation import ConversationAgent

logger = logging.getLogger(__name__)

AgentFactory = Callable[[Conversation], ConversationAgent]


class ConversationPool:
    """
    Lazily creates and caches conversation agents.

    Usage:
        pool = ConversationPool(store, factory)
        agent = await pool.get("slack-automation")
        await pool.shutdown()
    """

    def __init__(self, store: ConversationStoreProtocol, factory: AgentFactory):
        self.store = store
        self._factory = factory
        self._agents: Dict[str, ConversationAgent] = {}
        self._lock = asyncio.Lock()

    async def get(self, conversation_id: str) -> ConversationAgent:
        """Return the agent for ``conversation_id``, restoring its history if stored."""
        agent = self._agents.get(conversation_id)
        if agent is not None:
            return agent

        async with self._lock:
            agent = self._agents.get(conversation_id)
            if agent is not None:
                return agent

            conversation = await self.store.load(conversation_id)
            if conversation is None:
                conversation = Conversation(id=conversation_id)
                logger.info(f"Starting new conversation {conversation_id}")
            else:
                logger.info(f"Restored conversation {conversation_id} ({len(conversation)} messages)")

            agent = self._factory(conversation)
            self._agents[conversation_id] = agent
            return agent

    def peek(self, conversation_id: str) -> Optional[ConversationAgent]:
        """The cached agent, without loading."""
        return self._agents.get(conversation_id)

    def list_ids(self) -> List[str]:
        return list(self._agents)

    async def shutdown(self) -> None:
        """Stop every agent."""
        agents = list(self._agents.values())
        self._agents.clear()
        for agent in agents:
            try:
                await agent.stop()
            except Exception as e:
                logger.error(f"Failed to stop agent {agent.conversation_id}: {e}", exc_info=True)
        logger.info(f"Conversation pool shut down ({len(agents)} agents)")
