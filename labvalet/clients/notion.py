"""
Notion API Client - REST wrapper for the Labs page and Schedule database.

Requires a Notion Internal Integration Token (NOTION_API_KEY).
"""

import logging
import os
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import httpx

from ..constants import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

NOTION_VERSION = "2022-06-28"
BASE_URL = "https://api.notion.com/v1"


def _rich_text(content: str, url: Optional[str] = None) -> List[Dict[str, Any]]:
    text: Dict[str, Any] = {"content": content}
    if url:
        text["link"] = {"url": url}
    return [{"type": "text", "text": text}]


def build_lab_toggle(title: str, summary: Optional[str] = None, links: Optional[List[str]] = None) -> Dict[str, Any]:
    """Toggle block for one lab: summary paragraph, then a "Links" heading and one paragraph per link."""
    children: List[Dict[str, Any]] = []
    if summary:
        children.append({
            "object": "block",
            "type": "paragraph",
            "paragraph": {"rich_text": _rich_text(summary)},
        })
    if links:
        children.append({
            "object": "block",
            "type": "heading_3",
            "heading_3": {"rich_text": _rich_text("Links")},
        })
        for link in links:
            children.append({
                "object": "block",
                "type": "paragraph",
                "paragraph": {"rich_text": _rich_text(link, url=link)},
            })
    return {
        "object": "block",
        "type": "toggle",
        "toggle": {"rich_text": _rich_text(title), "children": children},
    }


def _notion_date(when: str, timezone_name: str) -> Dict[str, Any]:
    """
    Notion date value for an ISO-8601 ``when``.

    Offset-aware values (e.g. a lab's UTC ``dueDate``) are converted to
    ``timezone_name``; naive values are already local. Date-only values carry
    no time zone. Raises ValueError for anything that is not ISO-8601.
    """
    from dateutil import parser

    parsed = parser.isoparse(when)
    if "T" not in when:
        return {"start": parsed.date().isoformat()}
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(ZoneInfo(timezone_name)).replace(tzinfo=None)
    start = parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}"
    return {"start": start, "time_zone": timezone_name}


def build_schedule_properties(
    title: str,
    description: Optional[str] = None,
    when: Optional[str] = None,
    tags: Optional[List[str]] = None,
    item_type: Optional[str] = None,
    timezone_name: str = DEFAULT_TIMEZONE,
) -> Dict[str, Any]:
    """Schedule database row properties. ``when`` is sent as local time in ``timezone_name``."""
    properties: Dict[str, Any] = {
        "Name": {"title": [{"text": {"content": title}}]},
    }
    if description:
        properties["Details"] = {"rich_text": [{"text": {"content": description}}]}
    if when:
        properties["When"] = {"date": _notion_date(when, timezone_name)}
    if tags:
        properties["Tags"] = {"multi_select": [{"name": tag} for tag in tags]}
    if item_type:
        properties["Type"] = {"select": {"name": item_type}}
    return properties


class NotionClient:
    """Async Notion REST API client."""

    def __init__(
        self,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token or os.getenv("NOTION_API_KEY", "")
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.token)

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Notion-Version": NOTION_VERSION,
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport)

    # ── Pages ──

    async def create_page_in_database(
        self, database_id: str, properties: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Create a database row."""
        async with self._client() as client:
            resp = await client.post(
                f"{BASE_URL}/pages",
                headers=self._headers,
                json={"parent": {"database_id": database_id}, "properties": properties},
                timeout=15.0,
            )
            resp.raise_for_status()
            return resp.json()

    # ── Blocks ──

    async def append_blocks(
        self, block_id: str, children: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Append child blocks to a page/block."""
        async with self._client() as client:
            resp = await client.patch(
                f"{BASE_URL}/blocks/{block_id}/children",
                headers=self._headers,
                json={"children": children},
                timeout=15.0,
            )
            resp.raise_for_status()
            return resp.json()
