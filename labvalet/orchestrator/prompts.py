"""Built-in system prompts for the LabValet conversation round.

Each section is a function that returns a string. Sections are composed in
build_system_prompt() based on runtime configuration.
"""

from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from ..constants import (
    DEFAULT_TIMEZONE,
    TOOL_ADD_LAB_ITEM,
    TOOL_ADD_SCHEDULE_ITEM,
    TOOL_PARSE_GOOGLE_DOC,
    TOOL_PARSE_SLACK_MESSAGE,
    TOOL_SCHEDULE_TASK,
)


# ---------------------------------------------------------------------------
# Section renderers
# ---------------------------------------------------------------------------

def render_preamble() -> str:
    return (
        "You are LabValet, an AI assistant with access to scheduling and Notion tools. "
        "You turn lab announcements into Notion records and schedule follow-up tasks."
    )


def render_capabilities(extra_tools: Optional[List[str]] = None) -> str:
    lines = [
        "- Schedule tasks for later execution",
        "- Parse Slack messages about lab assignments",
        "- Summarize Google Docs linked from lab announcements",
        "- Add items to Notion (Labs page and Schedule database)",
        "- Get local time for any location",
    ]
    if extra_tools:
        lines.append(f"- Remote tools: {', '.join(sorted(extra_tools))}")
    return "Available capabilities:\n" + "\n".join(lines)


def render_lab_workflow() -> str:
    return f"""
When a user asks about Slack messages or labs:
1. Use {TOOL_PARSE_SLACK_MESSAGE} to extract lab info
2. If a lab links a Google Doc, you may use {TOOL_PARSE_GOOGLE_DOC} to summarize it
3. For EACH lab in the parsed result, call both {TOOL_ADD_LAB_ITEM} AND {TOOL_ADD_SCHEDULE_ITEM}
4. Confirm what you added

When a user asks to schedule something:
1. Use {TOOL_SCHEDULE_TASK} to set it up
""".strip()


def render_confirmation_rules() -> str:
    return """
# Confirmation

Always confirm what you're doing before executing tools.
Some tools change external systems and wait for the user's approval. When a
tool result says it is awaiting user confirmation, do not call it again; tell
the user what is pending and wait. A result with "denied": true means the user
declined that action; acknowledge it and do not retry.
""".strip()


def render_schedule_context(now: datetime, timezone_name: str) -> str:
    local = now.astimezone(ZoneInfo(timezone_name))
    return (
        f"Current date and time: {local.strftime('%A, %B %d, %Y %I:%M %p')} "
        f"({timezone_name}). Lab due times are in {timezone_name} unless stated otherwise."
    )


def build_system_prompt(
    now: Optional[datetime] = None,
    timezone_name: str = DEFAULT_TIMEZONE,
    extra_tools: Optional[List[str]] = None,
) -> str:
    """Compose the round's system prompt from its sections."""
    if now is None:
        now = datetime.now(ZoneInfo(timezone_name))
    sections = [
        render_preamble(),
        render_capabilities(extra_tools),
        render_lab_workflow(),
        render_confirmation_rules(),
        render_schedule_context(now, timezone_name),
    ]
    return "\n\n".join(s for s in sections if s)
