"""
LabValet Extraction Models - Records produced from lab announcements
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class LabEntry:
    """
    A lab deadline parsed from canonical text

    Attributes:
        lab_number: Positive lab number ("Lab 07" -> 7)
        title: Trimmed, non-empty title
        due_date: Aware datetime in UTC
        doc_link: Google Docs link found in the source message, if any
    """
    lab_number: int
    title: str
    due_date: datetime
    doc_link: Optional[str] = None

    def __post_init__(self):
        if self.lab_number <= 0:
            raise ValueError(f"lab_number must be positive, got {self.lab_number}")
        if not self.title or not self.title.strip():
            raise ValueError("title must not be empty")
        if self.due_date.tzinfo is None:
            raise ValueError("due_date must be timezone-aware")

    @property
    def due_date_iso(self) -> str:
        """UTC timestamp in ``YYYY-MM-DDTHH:MM:SS.000Z`` form."""
        utc = self.due_date.astimezone(timezone.utc)
        return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "labNumber": self.lab_number,
            "labTitle": self.title,
            "dueDate": self.due_date_iso,
            "docLink": self.doc_link,
        }
