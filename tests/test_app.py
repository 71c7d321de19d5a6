"""Tests for labvalet.app: config loading and application wiring"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from labvalet.app import LabValet, _load_config
from labvalet.constants import DEFAULT_SLACK_CONVERSATION, DEFAULT_TIMEZONE
from labvalet.llm.base import StreamChunk
from labvalet.message import Role


def _config(tmp_path, **overrides):
    cfg = {
        "llm": {"provider": "openai", "model": "gpt-4o-mini", "api_key": "sk-test"},
        "timezone": "America/Chicago",
        "storage": {"backend": "memory"},
        "scheduler": {"enabled": False, "store": str(tmp_path / "tasks.json")},
        "normalizer": {"enabled": False},
    }
    cfg.update(overrides)
    return cfg


# =========================================================================
# _load_config: env var substitution
# =========================================================================


class TestLoadConfig:

    def test_substitutes_env_vars(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TEST_NOTION_KEY", "secret_abc")
        config_file = tmp_path / "config.yaml"
        config_file.write_text("notion:\n  api_key: ${TEST_NOTION_KEY}\n")
        cfg = _load_config(str(config_file))
        assert cfg["notion"]["api_key"] == "secret_abc"

    def test_multiple_substitutions(self, monkeypatch, tmp_path):
        monkeypatch.setenv("VAR_A", "aaa")
        monkeypatch.setenv("VAR_B", "bbb")
        config_file = tmp_path / "config.yaml"
        config_file.write_text("a: ${VAR_A}\nb: ${VAR_B}\n")
        cfg = _load_config(str(config_file))
        assert cfg["a"] == "aaa"
        assert cfg["b"] == "bbb"

    def test_missing_env_var_raises(self, monkeypatch, tmp_path):
        monkeypatch.delenv("DEFINITELY_UNSET_VAR", raising=False)
        config_file = tmp_path / "config.yaml"
        config_file.write_text("key: ${DEFINITELY_UNSET_VAR}\n")
        with pytest.raises(ValueError, match="DEFINITELY_UNSET_VAR"):
            _load_config(str(config_file))

    def test_no_env_vars(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("llm:\n  model: gpt-4o-mini\n")
        assert _load_config(str(config_file)) == {"llm": {"model": "gpt-4o-mini"}}

    def test_empty_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        assert _load_config(str(config_file)) == {}


# =========================================================================
# LabValet
# =========================================================================


class TestLabValetConfig:

    def test_requires_model(self):
        with pytest.raises(ValueError, match="llm.model"):
            LabValet({"llm": {"provider": "openai"}})

    def test_defaults(self):
        app = LabValet({"llm": {"model": "gpt-4o-mini"}})
        assert app.timezone == DEFAULT_TIMEZONE
        assert app.slack_conversation_id == DEFAULT_SLACK_CONVERSATION == "slack-automation"

    def test_slack_conversation_override(self, tmp_path):
        app = LabValet(_config(tmp_path, slack={"conversation_id": "lab-channel"}))
        assert app.slack_conversation_id == "lab-channel"

    def test_loads_from_path(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("llm:\n  model: gpt-4o-mini\ntimezone: UTC\n")
        app = LabValet(str(config_file))
        assert app.timezone == "UTC"
        assert app.config["llm"]["model"] == "gpt-4o-mini"


class TestLabValetInitialization:

    async def test_registers_builtin_tools(self, tmp_path):
        app = LabValet(_config(tmp_path))
        tools = {t["name"]: t for t in await app.list_tools()}
        try:
            assert set(tools) == {
                "parse_slack_message",
                "add_lab_item",
                "add_schedule_item",
                "parse_google_doc",
                "schedule_task",
                "list_scheduled_tasks",
                "cancel_scheduled_task",
                "get_local_time",
            }
            assert tools["add_lab_item"]["confirmation_required"] is True
            assert tools["add_schedule_item"]["confirmation_required"] is True
            assert tools["parse_slack_message"]["confirmation_required"] is False
        finally:
            await app.shutdown()

    async def test_confirmation_policy_from_config(self, tmp_path):
        app = LabValet(_config(tmp_path, confirmation={"tools": ["schedule_task", "no_such_tool"]}))
        tools = {t["name"]: t for t in await app.list_tools()}
        try:
            assert tools["schedule_task"]["confirmation_required"] is True
            assert tools["get_local_time"]["confirmation_required"] is False
        finally:
            await app.shutdown()

    async def test_chat_runs_a_round(self, tmp_path, scripted_llm):
        app = LabValet(_config(tmp_path))
        await app._ensure_initialized()
        app._merger.llm_client = scripted_llm(fallback_text="Lab 15 is due Friday.")
        try:
            reply = await app.chat("c1", "When is Lab 15 due?")
            history = await app.get_history("c1")
        finally:
            await app.shutdown()

        assert reply == "Lab 15 is due Friday."
        assert [m.role for m in history] == [Role.USER, Role.ASSISTANT]

    async def test_slack_relay_appends_without_a_round(self, tmp_path, scripted_llm):
        app = LabValet(_config(tmp_path))
        await app._ensure_initialized()
        llm = scripted_llm()
        app._merger.llm_client = llm
        try:
            message = await app.relay_slack_message("Lab 15 (BST Maps) is due Friday")
            history = await app.get_history(DEFAULT_SLACK_CONVERSATION)
        finally:
            await app.shutdown()

        assert llm.prompts == []
        assert [m.id for m in history] == [message.id]
        assert message.source == "slack"
        assert "Lab 15 (BST Maps) is due Friday" in message.get_text()

    async def test_scheduled_tasks(self, tmp_path):
        app = LabValet(_config(tmp_path))
        try:
            task = await app.schedule_task("c1", "Remind me about Lab 15", delay_seconds=3600)
            assert [t.id for t in await app.list_tasks("c1")] == [task.id]
            assert await app.cancel_task(task.id) is True
            assert await app.list_tasks("c1") == []
        finally:
            await app.shutdown()

    async def test_fired_tasks_run_per_conversation(self, tmp_path, scripted_llm):
        app = LabValet(_config(tmp_path))
        await app._ensure_initialized()
        gate = asyncio.Event()
        app._merger.llm_client = scripted_llm(
            [[gate, StreamChunk(content="Held reminder.")]], fallback_text="Reminder sent.",
        )

        async def histories():
            return [await app.get_history(c) for c in ("c1", "c2")]

        async def one_round_finished():
            while not any(h and h[-1].role == Role.ASSISTANT for h in await histories()):
                await asyncio.sleep(0.01)

        try:
            await app.schedule_task("c1", "Remind me about Lab 15", delay_seconds=60)
            await app.schedule_task("c2", "Remind me about Lab 16", delay_seconds=60)
            fired = await app._scheduler.run_due(datetime.now(timezone.utc) + timedelta(minutes=5))

            # The gated round must not hold up the other conversation
            await asyncio.wait_for(one_round_finished(), 2)
            gate.set()
            await asyncio.wait_for(app._scheduler.wait_idle(), 2)
            final = await histories()
        finally:
            await app.shutdown()

        assert len(fired) == 2
        for history in final:
            assert [m.role for m in history] == [Role.SYSTEM, Role.ASSISTANT]
        assert sorted(h[-1].get_text() for h in final) == ["Held reminder.", "Reminder sent."]

    async def test_shutdown_is_idempotent(self, tmp_path):
        app = LabValet(_config(tmp_path))
        await app.shutdown()
        await app._ensure_initialized()
        await app.shutdown()
        await app.shutdown()
