"""LabValet trigger models: one-shot scheduled tasks."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScheduledTask:
    """A task that fires once into its conversation, then is removed."""
    conversation_id: str
    trigger_time: datetime
    description: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utc_now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.trigger_time.tzinfo is None:
            raise ValueError("trigger_time must be timezone-aware")
        self.trigger_time = self.trigger_time.astimezone(timezone.utc)

    def is_due(self, now: datetime) -> bool:
        return now >= self.trigger_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "trigger_time": self.trigger_time.isoformat(),
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduledTask":
        return cls(
            id=data["id"],
            conversation_id=data["conversation_id"],
            trigger_time=datetime.fromisoformat(data["trigger_time"]),
            description=data.get("description", ""),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else _utc_now(),
            metadata=data.get("metadata") or {},
        )
