"""
LabValet Agent Module

- ConversationAgent: single writer of one conversation's history
- ConversationPool: one agent per conversation id
- Conversation stores: in-memory and JSON files
"""

from .conversation import ConversationAgent
from .pool import ConversationPool
from .store import JsonFileConversationStore, MemoryConversationStore

__all__ = [
    "ConversationAgent",
    "ConversationPool",
    "JsonFileConversationStore",
    "MemoryConversationStore",
]
