"""Conversation stores: whole-history snapshots per conversation."""

import copy
import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Optional

from ..message import Conversation
from ..storage import atomic_write_json, read_json

logger = logging.getLogger(__name__)

STORE_VERSION = 1

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class MemoryConversationStore:
    """In-process store. Snapshots are copied so callers cannot mutate them."""

    def __init__(self):
        self._snapshots: Dict[str, dict] = {}

    async def load(self, conversation_id: str) -> Optional[Conversation]:
        snapshot = self._snapshots.get(conversation_id)
        if snapshot is None:
            return None
        return Conversation.from_dict(copy.deepcopy(snapshot))

    async def save(self, conversation: Conversation) -> None:
        self._snapshots[conversation.id] = conversation.to_dict()

    async def delete(self, conversation_id: str) -> bool:
        return self._snapshots.pop(conversation_id, None) is not None

    async def list_ids(self) -> List[str]:
        return sorted(self._snapshots)


class JsonFileConversationStore:
    """JSON file persistence for conversations.

    One file per conversation under ``directory``. Every save replaces
    the file atomically (temp file + rename) and keeps the previous
    snapshot as ``<name>.json.bak``.
    """

    def __init__(self, directory: str = "~/.labvalet/conversations"):
        self._directory = Path(os.path.expanduser(directory))

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, conversation_id: str) -> Path:
        return self._directory / f"{_UNSAFE_CHARS.sub('_', conversation_id)}.json"

    async def load(self, conversation_id: str) -> Optional[Conversation]:
        path = self.path_for(conversation_id)
        data = read_json(path)
        if data is None:
            return None
        version = data.get("version", 1)
        if version != STORE_VERSION:
            logger.warning(f"Conversation store version mismatch: expected {STORE_VERSION}, got {version}")
        conversation = Conversation.from_dict(data["conversation"])
        logger.debug(f"Loaded {len(conversation)} messages for {conversation_id} from {path}")
        return conversation

    async def save(self, conversation: Conversation) -> None:
        atomic_write_json(self.path_for(conversation.id), {
            "version": STORE_VERSION,
            "conversation": conversation.to_dict(),
        })

    async def delete(self, conversation_id: str) -> bool:
        path = self.path_for(conversation_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    async def list_ids(self) -> List[str]:
        if not self._directory.exists():
            return []
        ids = []
        for path in sorted(self._directory.glob("*.json")):
            data = read_json(path)
            if data and "conversation" in data:
                ids.append(data["conversation"]["id"])
        return ids
