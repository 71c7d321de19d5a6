"""
Scheduling Tools - One-shot tasks and local time.

schedule_task and cancel_scheduled_task require confirmation;
list_scheduled_tasks and get_local_time run automatically.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..constants import (
    DEFAULT_TIMEZONE,
    TOOL_CANCEL_SCHEDULED_TASK,
    TOOL_GET_LOCAL_TIME,
    TOOL_LIST_SCHEDULED_TASKS,
    TOOL_SCHEDULE_TASK,
)
from ..tools.models import ToolCategory, ToolDefinition, ToolExecutionContext, ToolExecutionError
from ..tools.registry import ToolRegistry
from ..triggers.scheduler import TaskScheduler

logger = logging.getLogger(__name__)


def _parse_when(value: str, timezone_name: str) -> datetime:
    """ISO-8601 date-time; naive values are local to ``timezone_name``."""
    from dateutil import parser
    try:
        parsed = parser.isoparse(value)
    except ValueError as e:
        raise ToolExecutionError(f"Invalid date-time '{value}', expected ISO-8601") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(timezone_name))
    return parsed


def _preview_schedule_task(args: Dict[str, Any]) -> str:
    if args.get("when"):
        at = f"at {args['when']}"
    else:
        at = f"in {args.get('delay_seconds', 0)} seconds"
    return f'Schedule "{args.get("description", "")}" {at}?'


def _preview_cancel_task(args: Dict[str, Any]) -> str:
    return f"Cancel scheduled task {args.get('task_id', '')}?"


def register_scheduling_tools(
    registry: ToolRegistry,
    scheduler: TaskScheduler,
    timezone_name: str = DEFAULT_TIMEZONE,
) -> None:
    """Register schedule_task, list_scheduled_tasks, cancel_scheduled_task and get_local_time."""

    async def schedule_task_executor(args: dict, context: ToolExecutionContext) -> Dict[str, Any]:
        when = args.get("when")
        delay = args.get("delay_seconds")
        if not when and delay is None:
            raise ToolExecutionError("Provide either 'when' or 'delay_seconds'.")
        trigger_time = _parse_when(when, timezone_name) if when else None
        try:
            task = await scheduler.schedule(
                context.conversation_id,
                args["description"],
                trigger_time=trigger_time,
                delay_seconds=delay,
            )
        except ValueError as e:
            raise ToolExecutionError(str(e)) from e
        return {
            "task_id": task.id,
            "description": task.description,
            "trigger_time": task.trigger_time.isoformat(),
            "message": f"Task scheduled for {task.trigger_time.astimezone(ZoneInfo(timezone_name)).isoformat()}",
        }

    async def list_scheduled_tasks_executor(args: dict, context: ToolExecutionContext) -> List[Dict[str, Any]]:
        return [task.to_dict() for task in scheduler.list_tasks(context.conversation_id)]

    async def cancel_scheduled_task_executor(args: dict, context: ToolExecutionContext) -> str:
        task_id = args["task_id"]
        task = scheduler.get_task(task_id)
        if task is None or task.conversation_id != context.conversation_id:
            raise ToolExecutionError(f"No scheduled task with id {task_id}")
        await scheduler.cancel(task_id)
        return f"Cancelled task {task_id} ({task.description})."

    async def get_local_time_executor(args: dict, context: ToolExecutionContext) -> Dict[str, Any]:
        name = args.get("timezone") or timezone_name
        try:
            zone = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ToolExecutionError(f"Unknown timezone '{name}', use an IANA name like 'Europe/London'") from e
        now = datetime.now(timezone.utc).astimezone(zone)
        return {
            "timezone": name,
            "local_time": now.isoformat(),
            "display": now.strftime("%A, %B %d, %Y %I:%M %p"),
        }

    registry.register(ToolDefinition(
        name=TOOL_SCHEDULE_TASK,
        description=(
            "Schedule a task to run later in this conversation. Give either 'when' "
            f"(ISO-8601, local time in {timezone_name} if no offset) or 'delay_seconds'."
        ),
        parameters={
            "type": "object",
            "properties": {
                "description": {"type": "string", "description": "What to do when the task fires"},
                "when": {"type": "string", "description": "ISO-8601 date-time"},
                "delay_seconds": {"type": "integer", "description": "Seconds from now"},
            },
            "required": ["description"],
        },
        executor=schedule_task_executor,
        confirmation_required=True,
        category=ToolCategory.SCHEDULING,
        get_preview=_preview_schedule_task,
    ))

    registry.register(ToolDefinition(
        name=TOOL_LIST_SCHEDULED_TASKS,
        description="List tasks scheduled in this conversation.",
        parameters={"type": "object", "properties": {}, "required": []},
        executor=list_scheduled_tasks_executor,
        category=ToolCategory.SCHEDULING,
    ))

    registry.register(ToolDefinition(
        name=TOOL_CANCEL_SCHEDULED_TASK,
        description="Cancel a scheduled task by id (see list_scheduled_tasks).",
        parameters={
            "type": "object",
            "properties": {
                "task_id": {"type": "string", "description": "Task id"},
            },
            "required": ["task_id"],
        },
        executor=cancel_scheduled_task_executor,
        confirmation_required=True,
        category=ToolCategory.SCHEDULING,
        get_preview=_preview_cancel_task,
    ))

    registry.register(ToolDefinition(
        name=TOOL_GET_LOCAL_TIME,
        description="Get the current local time for an IANA timezone (e.g. 'America/New_York').",
        parameters={
            "type": "object",
            "properties": {
                "timezone": {"type": "string", "description": f"IANA timezone (default {timezone_name})"},
            },
            "required": [],
        },
        executor=get_local_time_executor,
        category=ToolCategory.UTILITY,
    ))
