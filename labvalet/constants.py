"""
Shared constants for LabValet.
"""

from typing import FrozenSet

# Timezone used to interpret lab due dates and local times
DEFAULT_TIMEZONE = "America/Los_Angeles"

# Conversation that receives relayed Slack messages
DEFAULT_SLACK_CONVERSATION = "slack-automation"

# ── Message sources ──
SOURCE_SLACK = "slack"
SOURCE_SCHEDULER = "scheduler"
SOURCE_API = "api"

# ── Builtin tool names ──
TOOL_PARSE_SLACK_MESSAGE = "parse_slack_message"
TOOL_ADD_LAB_ITEM = "add_lab_item"
TOOL_ADD_SCHEDULE_ITEM = "add_schedule_item"
TOOL_PARSE_GOOGLE_DOC = "parse_google_doc"
TOOL_SCHEDULE_TASK = "schedule_task"
TOOL_LIST_SCHEDULED_TASKS = "list_scheduled_tasks"
TOOL_CANCEL_SCHEDULED_TASK = "cancel_scheduled_task"
TOOL_GET_LOCAL_TIME = "get_local_time"

# Tools with external side effects; each call needs user approval
CONFIRMATION_REQUIRED_TOOLS: FrozenSet[str] = frozenset({
    TOOL_ADD_LAB_ITEM,
    TOOL_ADD_SCHEDULE_ITEM,
    TOOL_SCHEDULE_TASK,
    TOOL_CANCEL_SCHEDULED_TASK,
})

# ── Round limits ──
DEFAULT_MAX_STEPS = 5
DEFAULT_TOOL_TIMEOUT = 30.0

SLACK_RELAY_TEMPLATE = (
    "New Slack message received. Parse it and add any labs to Notion:\n\n{text}"
)
SCHEDULED_TASK_TEMPLATE = "Running scheduled task: {description}"
