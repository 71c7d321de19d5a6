"""Tests for the builtin tools and their API clients"""

import json
from datetime import datetime, timezone

import httpx
import pytest

from labvalet.builtin_tools import (
    register_google_docs_tools,
    register_lab_tools,
    register_notion_tools,
    register_scheduling_tools,
)
from labvalet.clients import GoogleDocsClient, NotionClient
from labvalet.clients.google_docs import extract_document_id, summarize_document
from labvalet.clients.notion import build_lab_toggle, build_schedule_properties
from labvalet.extraction import ScheduleExtractor
from labvalet.tools.executor import ToolExecutor
from labvalet.tools.models import ToolCall, ToolExecutionContext
from labvalet.tools.registry import ToolRegistry
from labvalet.triggers import TaskScheduler, TaskStore


CONTEXT = ToolExecutionContext(conversation_id="c1")


async def run_tool(registry, name, **arguments):
    return await ToolExecutor(registry).execute(ToolCall(id=f"call_{name}", name=name, arguments=arguments), CONTEXT)


class Recorder:
    """httpx.MockTransport handler that records requests."""

    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body if body is not None else {"object": "page", "id": "p1"}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)


# =========================================================================
# parse_slack_message
# =========================================================================


class TestLabTools:

    async def test_parse_slack_message(self):
        registry = ToolRegistry()
        register_lab_tools(registry, ScheduleExtractor())

        result = await run_tool(
            registry,
            "parse_slack_message",
            text=(
                "Lab 15 (BST Maps) due November 21, 2025 11:59 PM.\n"
                "https://docs.google.com/document/d/abc123/edit"
            ),
        )

        assert result.is_error is False
        assert result.output == [{
            "labNumber": 15,
            "labTitle": "BST Maps",
            "dueDate": "2025-11-22T07:59:00.000Z",
            "docLink": "https://docs.google.com/document/d/abc123/edit",
        }]
        assert registry.get_tool("parse_slack_message").confirmation_required is False

    async def test_nothing_found(self):
        registry = ToolRegistry()
        register_lab_tools(registry, ScheduleExtractor())
        result = await run_tool(registry, "parse_slack_message", text="office hours moved")
        assert result.output == []


# =========================================================================
# Notion
# =========================================================================


class TestNotionPayloads:

    def test_lab_toggle(self):
        block = build_lab_toggle("Lab 15: BST Maps", "Implement a map.", ["https://docs.google.com/document/d/x"])

        assert block["type"] == "toggle"
        assert block["toggle"]["rich_text"][0]["text"]["content"] == "Lab 15: BST Maps"
        children = block["toggle"]["children"]
        assert [c["type"] for c in children] == ["paragraph", "heading_3", "paragraph"]
        link = children[2]["paragraph"]["rich_text"][0]["text"]
        assert link["link"] == {"url": "https://docs.google.com/document/d/x"}

    def test_lab_toggle_without_extras(self):
        assert build_lab_toggle("Lab 1")["toggle"]["children"] == []

    def test_schedule_properties(self):
        properties = build_schedule_properties(
            "Lab 15 due",
            description="BST Maps",
            when="2025-11-22T07:59:00.000Z",
            tags=["CS 2"],
            item_type="Lab",
            timezone_name="America/Los_Angeles",
        )
        assert properties["Name"] == {"title": [{"text": {"content": "Lab 15 due"}}]}
        assert properties["When"] == {
            "date": {"start": "2025-11-21T23:59:00.000", "time_zone": "America/Los_Angeles"},
        }
        assert properties["Tags"] == {"multi_select": [{"name": "CS 2"}]}
        assert properties["Type"] == {"select": {"name": "Lab"}}

    def test_lab_due_date_lands_on_local_deadline(self):
        entry = ScheduleExtractor(timezone_name="America/Los_Angeles").parse(
            "Lab 15 (BST Maps) due November 21, 2025 11:59 PM."
        )[0]

        properties = build_schedule_properties("Lab 15", when=entry.due_date_iso, timezone_name="America/Los_Angeles")

        assert entry.due_date_iso == "2025-11-22T07:59:00.000Z"
        assert properties["When"]["date"] == {"start": "2025-11-21T23:59:00.000", "time_zone": "America/Los_Angeles"}

    @pytest.mark.parametrize("when,expected", [
        ("2025-11-21T23:59:00", {"start": "2025-11-21T23:59:00.000", "time_zone": "America/Los_Angeles"}),
        ("2025-11-22T02:59:00-05:00", {"start": "2025-11-21T23:59:00.000", "time_zone": "America/Los_Angeles"}),
        ("2025-11-21", {"start": "2025-11-21"}),
    ])
    def test_schedule_when_forms(self, when, expected):
        properties = build_schedule_properties("x", when=when, timezone_name="America/Los_Angeles")
        assert properties["When"]["date"] == expected

    def test_schedule_when_invalid(self):
        with pytest.raises(ValueError):
            build_schedule_properties("x", when="next friday")

    def test_schedule_properties_minimal(self):
        assert list(build_schedule_properties("x")) == ["Name"]


class TestNotionTools:

    def _registry(self, handler, token="secret"):
        registry = ToolRegistry()
        client = NotionClient(token=token, transport=httpx.MockTransport(handler))
        register_notion_tools(
            registry, client, labs_page_id="labs-page", schedule_database_id="sched-db",
            timezone_name="America/Los_Angeles",
        )
        return registry

    async def test_tools_require_confirmation(self):
        registry = self._registry(Recorder())
        assert registry.get_tool("add_lab_item").confirmation_required
        assert registry.get_tool("add_schedule_item").confirmation_required
        preview = registry.get_tool("add_lab_item").get_preview({"title": "Lab 15", "links": ["a"]})
        assert preview == 'Add "Lab 15" to the Notion Labs page with 1 link(s)?'

    async def test_add_lab_item(self):
        handler = Recorder()
        registry = self._registry(handler)

        result = await run_tool(registry, "add_lab_item", title="Lab 15: BST Maps", summary="Maps")

        assert result.output == 'Successfully added "Lab 15: BST Maps" to Labs section.'
        request = handler.requests[0]
        assert request.method == "PATCH"
        assert str(request.url) == "https://api.notion.com/v1/blocks/labs-page/children"
        assert request.headers["authorization"] == "Bearer secret"
        assert request.headers["notion-version"] == "2022-06-28"
        body = json.loads(request.content)
        assert body["children"][0]["type"] == "toggle"

    async def test_add_schedule_item(self):
        handler = Recorder()
        registry = self._registry(handler)

        result = await run_tool(
            registry, "add_schedule_item", title="Lab 15 due", when="2025-11-22T07:59:00.000Z", type="Lab",
        )

        assert result.output == 'Added "Lab 15 due" to your Notion Schedule.'
        request = handler.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.notion.com/v1/pages"
        body = json.loads(request.content)
        assert body["parent"] == {"database_id": "sched-db"}
        assert body["properties"]["When"]["date"]["start"] == "2025-11-21T23:59:00.000"

    async def test_add_schedule_item_invalid_when(self):
        handler = Recorder()
        registry = self._registry(handler)

        result = await run_tool(registry, "add_schedule_item", title="Lab 15 due", when="next friday")

        assert result.is_error
        assert "next friday" in result.output["message"]
        assert handler.requests == []

    async def test_api_error_is_tool_error(self):
        registry = self._registry(Recorder(status=400, body={"message": "validation_error"}))

        result = await run_tool(registry, "add_schedule_item", title="x")

        assert result.is_error
        assert result.output["message"].startswith("Failed: ")
        assert "validation_error" in result.output["message"]

    async def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("NOTION_API_KEY", raising=False)
        handler = Recorder()
        registry = self._registry(handler, token="")

        result = await run_tool(registry, "add_lab_item", title="Lab 15")

        assert result.is_error
        assert result.output["message"] == "Notion credentials missing."
        assert handler.requests == []


# =========================================================================
# Google Docs
# =========================================================================


DOCUMENT = {
    "title": "Lab 15: BST Maps",
    "body": {"content": [
        {"sectionBreak": {}},
        {"paragraph": {
            "paragraphStyle": {"namedStyleType": "HEADING_1"},
            "elements": [{"textRun": {"content": "Overview\n"}}],
        }},
        {"paragraph": {
            "paragraphStyle": {"namedStyleType": "NORMAL_TEXT"},
            "elements": [{"textRun": {"content": "\n"}}],
        }},
        {"paragraph": {
            "paragraphStyle": {"namedStyleType": "NORMAL_TEXT"},
            "elements": [
                {"textRun": {"content": "Implement a map with a BST. See "}},
                {"textRun": {
                    "content": "starter code",
                    "textStyle": {"link": {"url": "https://github.com/cs/lab15"}},
                }},
            ],
        }},
        {"paragraph": {
            "paragraphStyle": {"namedStyleType": "HEADING_2"},
            "elements": [{"textRun": {"content": "Submission"}}],
        }},
    ]},
}


class TestGoogleDocs:

    def test_extract_document_id(self):
        assert extract_document_id("https://docs.google.com/document/d/1AbC-d_E/edit?usp=sharing") == "1AbC-d_E"
        assert extract_document_id("https://example.com") is None

    def test_summarize_document(self):
        assert summarize_document(DOCUMENT) == {
            "title": "Lab 15: BST Maps",
            "summary": "Implement a map with a BST. See starter code",
            "links": ["https://github.com/cs/lab15"],
            "headings": ["Overview", "Submission"],
        }

    def test_summarize_empty_document(self):
        assert summarize_document({}) == {"title": "Untitled", "summary": "", "links": [], "headings": []}

    async def test_parse_google_doc_tool(self):
        handler = Recorder(body=DOCUMENT)
        registry = ToolRegistry()
        register_google_docs_tools(registry, GoogleDocsClient("tok", transport=httpx.MockTransport(handler)))

        result = await run_tool(registry, "parse_google_doc", url="https://docs.google.com/document/d/doc1/edit")

        assert result.output["title"] == "Lab 15: BST Maps"
        assert str(handler.requests[0].url) == "https://docs.googleapis.com/v1/documents/doc1"
        assert handler.requests[0].headers["authorization"] == "Bearer tok"

    async def test_invalid_url(self):
        registry = ToolRegistry()
        register_google_docs_tools(registry, GoogleDocsClient("tok", transport=httpx.MockTransport(Recorder())))
        result = await run_tool(registry, "parse_google_doc", url="not a doc")
        assert result.output["message"] == "Invalid Google Docs URL."

    async def test_fetch_failure(self):
        registry = ToolRegistry()
        handler = Recorder(status=404, body={"error": "not found"})
        register_google_docs_tools(registry, GoogleDocsClient("tok", transport=httpx.MockTransport(handler)))
        result = await run_tool(registry, "parse_google_doc", url="https://docs.google.com/document/d/x/edit")
        assert result.is_error
        assert result.output["message"].startswith("Doc fetch failed:")


# =========================================================================
# Scheduling
# =========================================================================


class TestSchedulingTools:

    def _setup(self):
        registry = ToolRegistry()
        scheduler = TaskScheduler(TaskStore(), timezone_name="America/Los_Angeles")
        register_scheduling_tools(registry, scheduler, timezone_name="America/Los_Angeles")
        return registry, scheduler

    async def test_policy(self):
        registry, _ = self._setup()
        assert registry.get_tool("schedule_task").confirmation_required
        assert registry.get_tool("cancel_scheduled_task").confirmation_required
        assert not registry.get_tool("list_scheduled_tasks").confirmation_required
        assert not registry.get_tool("get_local_time").confirmation_required

    async def test_schedule_list_cancel(self):
        registry, scheduler = self._setup()

        scheduled = await run_tool(
            registry, "schedule_task", description="remind me about Lab 15", when="2030-11-21T09:00:00",
        )
        assert scheduled.is_error is False
        task_id = scheduled.output["task_id"]
        assert scheduled.output["trigger_time"] == "2030-11-21T17:00:00+00:00"

        listed = await run_tool(registry, "list_scheduled_tasks")
        assert [t["id"] for t in listed.output] == [task_id]

        cancelled = await run_tool(registry, "cancel_scheduled_task", task_id=task_id)
        assert cancelled.output == f"Cancelled task {task_id} (remind me about Lab 15)."
        assert scheduler.list_tasks() == []

    async def test_schedule_requires_time(self):
        registry, _ = self._setup()
        result = await run_tool(registry, "schedule_task", description="x")
        assert result.is_error
        assert "delay_seconds" in result.output["message"]

    async def test_schedule_rejects_bad_time(self):
        registry, _ = self._setup()
        result = await run_tool(registry, "schedule_task", description="x", when="next friday")
        assert result.is_error

    async def test_schedule_with_delay(self):
        registry, scheduler = self._setup()
        result = await run_tool(registry, "schedule_task", description="x", delay_seconds=60)
        task = scheduler.get_task(result.output["task_id"])
        assert task.conversation_id == "c1"
        assert task.trigger_time > datetime.now(timezone.utc)

    async def test_cancel_other_conversation_task(self):
        registry, scheduler = self._setup()
        task = await scheduler.schedule("someone-else", "x", delay_seconds=60)

        result = await run_tool(registry, "cancel_scheduled_task", task_id=task.id)

        assert result.is_error
        assert result.output["message"] == f"No scheduled task with id {task.id}"
        assert scheduler.get_task(task.id) is not None

    async def test_get_local_time(self):
        registry, _ = self._setup()
        result = await run_tool(registry, "get_local_time", timezone="Europe/London")
        assert result.output["timezone"] == "Europe/London"
        assert datetime.fromisoformat(result.output["local_time"]).tzinfo is not None

        default = await run_tool(registry, "get_local_time")
        assert default.output["timezone"] == "America/Los_Angeles"

    async def test_get_local_time_unknown_zone(self):
        registry, _ = self._setup()
        result = await run_tool(registry, "get_local_time", timezone="Mars/Olympus")
        assert result.is_error
        assert "Unknown timezone" in result.output["message"]
