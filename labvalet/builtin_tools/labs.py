"""
Lab Tools - Parse lab announcements into structured entries.
"""

import logging
from typing import Any, Dict, List

from ..constants import TOOL_PARSE_SLACK_MESSAGE
from ..extraction.extractor import ScheduleExtractor
from ..tools.models import ToolCategory, ToolDefinition, ToolExecutionContext
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def register_lab_tools(registry: ToolRegistry, extractor: ScheduleExtractor) -> None:
    """Register parse_slack_message."""

    async def parse_slack_message_executor(args: dict, context: ToolExecutionContext) -> List[Dict[str, Any]]:
        text = args["text"]
        logger.info(f"parse_slack_message called for {context.conversation_id} ({len(text)} chars)")
        entries = await extractor.extract(text)
        return [entry.to_dict() for entry in entries]

    registry.register(ToolDefinition(
        name=TOOL_PARSE_SLACK_MESSAGE,
        description=(
            "Extract lab assignments from a Slack message. Returns a JSON list of "
            "{labNumber, labTitle, dueDate (UTC ISO-8601), docLink}. "
            "Call this before adding labs to Notion."
        ),
        parameters={
            "type": "object",
            "properties": {
                "text": {
                    "type": "string",
                    "description": "The raw Slack message text",
                },
            },
            "required": ["text"],
        },
        executor=parse_slack_message_executor,
        category=ToolCategory.LABS,
    ))
