"""
Notion Tools - Add labs to the Labs page and deadlines to the Schedule database.

Both tools change the user's workspace and require confirmation.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..clients.notion import NotionClient, build_lab_toggle, build_schedule_properties
from ..constants import DEFAULT_TIMEZONE, TOOL_ADD_LAB_ITEM, TOOL_ADD_SCHEDULE_ITEM
from ..tools.models import ToolCategory, ToolDefinition, ToolExecutionContext, ToolExecutionError
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def _preview_lab(args: Dict[str, Any]) -> str:
    links = args.get("links") or []
    suffix = f" with {len(links)} link(s)" if links else ""
    return f'Add "{args.get("title", "")}" to the Notion Labs page{suffix}?'


def _preview_schedule(args: Dict[str, Any]) -> str:
    when = args.get("when")
    suffix = f" due {when}" if when else ""
    return f'Add "{args.get("title", "")}" to the Notion Schedule{suffix}?'


def register_notion_tools(
    registry: ToolRegistry,
    client: NotionClient,
    labs_page_id: Optional[str] = None,
    schedule_database_id: Optional[str] = None,
    timezone_name: str = DEFAULT_TIMEZONE,
) -> None:
    """Register add_lab_item and add_schedule_item."""

    async def add_lab_item_executor(args: dict, context: ToolExecutionContext) -> str:
        if not client.configured or not labs_page_id:
            raise ToolExecutionError("Notion credentials missing.")
        title = args["title"]
        block = build_lab_toggle(title, args.get("summary"), args.get("links"))
        try:
            await client.append_blocks(labs_page_id, [block])
        except httpx.HTTPStatusError as e:
            raise ToolExecutionError(f"Error: {e.response.text}") from e
        logger.info(f"Added lab '{title}' to Notion Labs page")
        return f'Successfully added "{title}" to Labs section.'

    async def add_schedule_item_executor(args: dict, context: ToolExecutionContext) -> str:
        if not client.configured or not schedule_database_id:
            raise ToolExecutionError("Notion credentials missing.")
        title = args["title"]
        try:
            properties = build_schedule_properties(
                title,
                description=args.get("description"),
                when=args.get("when"),
                tags=args.get("tags"),
                item_type=args.get("type"),
                timezone_name=timezone_name,
            )
        except ValueError as e:
            raise ToolExecutionError(f"Invalid date-time '{args['when']}', expected ISO-8601") from e
        try:
            await client.create_page_in_database(schedule_database_id, properties)
        except httpx.HTTPStatusError as e:
            raise ToolExecutionError(f"Failed: {e.response.text}") from e
        logger.info(f"Added schedule item '{title}' to Notion")
        return f'Added "{title}" to your Notion Schedule.'

    registry.register(ToolDefinition(
        name=TOOL_ADD_LAB_ITEM,
        description=(
            "Add a lab to the Notion Labs page as a toggle with an optional summary "
            "and a list of links (e.g. the lab's Google Doc)."
        ),
        parameters={
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Lab title, e.g. 'Lab 15: BST Maps'"},
                "summary": {"type": "string", "description": "Short description of the lab"},
                "links": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Related URLs",
                },
            },
            "required": ["title"],
        },
        executor=add_lab_item_executor,
        confirmation_required=True,
        category=ToolCategory.LABS,
        get_preview=_preview_lab,
    ))

    registry.register(ToolDefinition(
        name=TOOL_ADD_SCHEDULE_ITEM,
        description=(
            "Add a dated item to the Notion Schedule database. 'when' is an ISO-8601 "
            "date-time; a trailing Z is dropped and the time is stored as local time."
        ),
        parameters={
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Item name"},
                "description": {"type": "string", "description": "Details"},
                "when": {"type": "string", "description": "ISO-8601 date-time of the deadline"},
                "tags": {"type": "array", "items": {"type": "string"}},
                "type": {"type": "string", "description": "Item type, e.g. 'Lab'"},
            },
            "required": ["title"],
        },
        executor=add_schedule_item_executor,
        confirmation_required=True,
        category=ToolCategory.SCHEDULING,
        get_preview=_preview_schedule,
    ))
